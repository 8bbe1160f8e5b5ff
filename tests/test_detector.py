import unittest

from textbridge import FORMAT_KAG, FORMAT_RENPY, FORMAT_RPGMV_JSON, FORMAT_TYRANO, FORMAT_UNKNOWN
from textbridge.detector import detect_format, sniff_ks


class TestDetectFormat(unittest.TestCase):
    def test_extensions(self):
        cases = {
            "CommonEvents.json": FORMAT_RPGMV_JSON,
            "data/Map001.JSON": FORMAT_RPGMV_JSON,
            "script.rpy": FORMAT_RENPY,
            "Script.RPY": FORMAT_RENPY,
            "archive.rpa": "renpy-archive",
            "script.rpyc": "renpy-compiled",
            "Scripts.rvdata2": "rgss-data",
            "data.xp3": "kirikiri-archive",
            "img.rpgmvp": "rpgmv-encrypted",
            "readme.txt": FORMAT_UNKNOWN,
            "noextension": FORMAT_UNKNOWN,
        }
        for name, expected in cases.items():
            with self.subTest(name=name):
                self.assertEqual(detect_format(name, b""), expected)

    def test_ks_is_sniffed_from_content(self):
        self.assertEqual(detect_format("first.ks", b"@jump target=*next\n"), FORMAT_KAG)
        self.assertEqual(detect_format("first.ks", "「こんにちは」\n".encode("utf-8")), FORMAT_KAG)
        self.assertEqual(detect_format("first.ks", b"[cm]\nHello.[p]\n"), FORMAT_TYRANO)

    def test_ks_defaults_to_tyrano(self):
        self.assertEqual(detect_format("empty.ks"), FORMAT_TYRANO)
        self.assertEqual(sniff_ks("just words"), FORMAT_TYRANO)

    def test_directive_wins_over_tags(self):
        self.assertEqual(sniff_ks("[cm]\n@wait time=200\n"), FORMAT_KAG)

    def test_undecodable_ks_still_gets_a_tag(self):
        self.assertEqual(detect_format("broken.ks", b"\xff\xfe[cm]"), FORMAT_TYRANO)
