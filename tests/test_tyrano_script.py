import unittest

from textbridge.tyrano_script import TyranoScriptParser, is_text_line


class TestTextLine(unittest.TestCase):
    def test_accepted_lines(self):
        for line in ("[face id=1]Hello there.[wait]", "Good morning.[p]", "  ようこそ[l][r]"):
            with self.subTest(line=line):
                self.assertTrue(is_text_line(line))

    def test_rejected_lines(self):
        for line in (
            "",
            "*start",
            "; comment",
            "@jump target=*next",
            "[cm]",
            "#yuko",
            "if (f.count > 1)",
            "tf.count++;",
            "[eval exp=\"f.a=1\"]",
            "alert(\"x\")",
            "f.flag = 1",
        ):
            with self.subTest(line=line):
                self.assertFalse(is_text_line(line))


class TestTyranoScriptParser(unittest.TestCase):
    def setUp(self):
        self.parser = TyranoScriptParser()

    def test_center_text_round_trip(self):
        source = "[face id=1]Hello there.[wait]\n"

        texts, mapping = self.parser.extract(source)

        self.assertEqual(texts, ["Hello there."])
        self.assertEqual(mapping[0].prefix, "[face id=1]")
        self.assertEqual(mapping[0].suffix, "[wait]")
        self.assertEqual(self.parser.reinsert(source, mapping, ["Salut."]),
                         "[face id=1]Salut.[wait]\n")

    def test_structure_lines_are_untouched(self):
        source = "*start\r\n[cm]\r\n\r\nHello.[p]\r\n; end\r\n"

        texts, mapping = self.parser.extract(source)
        self.assertEqual(texts, ["Hello."])
        self.assertEqual(mapping[0].line_index, 3)

        out = self.parser.reinsert(source, mapping, ["Bonjour."])
        self.assertEqual(out, "*start\r\n[cm]\r\n\r\nBonjour.[p]\r\n; end\r\n")

    def test_line_without_letters_is_skipped(self):
        texts, _ = self.parser.extract("[l]……[r]\n")

        self.assertEqual(texts, [])

    def test_identity_reinsertion(self):
        source = "*scene1\n#akane\nおはよう。[p]\n[bg storage=room.jpg]\nThe end.[s]"

        texts, mapping = self.parser.extract(source)

        self.assertEqual(texts, ["おはよう。", "The end."])
        self.assertEqual(self.parser.reinsert(source, mapping, texts), source)

    def test_missing_texts_count_as_empty(self):
        source = "[face id=1]Hello there.[wait]\n"
        _, mapping = self.parser.extract(source)

        self.assertEqual(self.parser.reinsert(source, mapping, []), "[face id=1][wait]\n")

    def test_newline_in_edit_stays_on_one_line(self):
        source = "[face id=1]Hello there.[wait]\nThe end.[s]\n"
        _, mapping = self.parser.extract(source)

        out = self.parser.reinsert(source, mapping, ["Salut.\nÇa va ?", "Fin."])

        self.assertEqual(out, "[face id=1]Salut.[r]Ça va ?[wait]\nFin.[s]\n")
