"""
Extraction cache tests.
"""

import threading
import unittest

from maisoku.docuflow.cache import ExtractionCache, image_fingerprint
from maisoku.models import ListingRecord, TargetLanguage
from tests.fixtures import SORA_PAYLOAD


class TestExtractionCache(unittest.TestCase):

    def setUp(self):
        self.cache = ExtractionCache()
        self.record = ListingRecord.model_validate(SORA_PAYLOAD)

    def test_fingerprint_covers_whole_payload(self):
        prefix = b"\xff\xd8\xff\xe0" + b"\x00" * 4096
        self.assertNotEqual(image_fingerprint(prefix + b"a"), image_fingerprint(prefix + b"b"))
        self.assertEqual(image_fingerprint(prefix), image_fingerprint(bytes(prefix)))

    def test_miss_then_hit(self):
        key = ExtractionCache.make_key(b"image", TargetLanguage.ENGLISH)

        self.assertIsNone(self.cache.get(key))
        self.cache.put_if_absent(key, self.record)

        self.assertEqual(self.cache.get(key), self.record)
        self.assertEqual((self.cache.hits, self.cache.misses), (1, 1))
        self.assertIn(key, self.cache)

    def test_language_is_part_of_key(self):
        english = ExtractionCache.make_key(b"image", TargetLanguage.ENGLISH)
        chinese = ExtractionCache.make_key(b"image", TargetLanguage.TRADITIONAL_CHINESE)
        self.cache.put_if_absent(english, self.record)

        self.assertNotIn(chinese, self.cache)

    def test_existing_entry_not_overwritten(self):
        key = ExtractionCache.make_key(b"image", TargetLanguage.ENGLISH)
        other = self.record.model_copy(update={"price": "¥1"})

        self.cache.put_if_absent(key, self.record)
        kept = self.cache.put_if_absent(key, other)

        self.assertEqual(kept, self.record)
        self.assertEqual(self.cache.get(key).price, "¥45,000,000")

    def test_concurrent_writers(self):
        keys = [ExtractionCache.make_key(f"image-{i}".encode(), TargetLanguage.ENGLISH) for i in range(50)]

        def writer(chunk):
            for key in chunk:
                self.cache.put_if_absent(key, self.record)

        threads = [threading.Thread(target=writer, args=(keys[i::5],)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(self.cache), 50)

    def test_clear(self):
        key = ExtractionCache.make_key(b"image", TargetLanguage.ENGLISH)
        self.cache.put_if_absent(key, self.record)
        self.cache.clear()

        self.assertEqual(len(self.cache), 0)
        self.assertEqual(self.cache.hits, 0)


if __name__ == "__main__":
    unittest.main()
