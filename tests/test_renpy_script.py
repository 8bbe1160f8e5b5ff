import unittest

from textbridge.renpy_script import RenPyScriptParser, is_dialog_line


class TestDialogLine(unittest.TestCase):
    def test_accepted_lines(self):
        for line in (
            'e "Hello there."',
            '    narrator "It was a dark night."',
            '"Just narration."',
            'label_name "He said, \\"hi\\" to her."',
            'e happy: "Smiling now."',
        ):
            with self.subTest(line=line):
                self.assertTrue(is_dialog_line(line))

    def test_rejected_lines(self):
        for line in (
            "",
            "# a comment",
            "label start:",
            "scene bg park",
            'define e = Character("Eileen")',
            'play music "audio/theme.ogg"',
            'image bg = "bg/park.png"',
            "    pause 1.0",
        ):
            with self.subTest(line=line):
                self.assertFalse(is_dialog_line(line))


class TestRenPyScriptParser(unittest.TestCase):
    def setUp(self):
        self.parser = RenPyScriptParser()

    def test_escaped_quotes_round_trip(self):
        source = 'label_name "He said, \\"hi\\" to her."\n'

        texts, mapping = self.parser.extract(source)

        self.assertEqual(texts, ['He said, \\"hi\\" to her.'])
        self.assertEqual(mapping[0].quote, '"')

        out = self.parser.reinsert(source, mapping, ['Il a dit \\"salut\\".'])
        self.assertEqual(out, 'label_name "Il a dit \\"salut\\"."\n')

    def test_bare_quote_in_translation_is_escaped(self):
        source = 'e "Hello there."\n'
        _, mapping = self.parser.extract(source)

        out = self.parser.reinsert(source, mapping, ['Say "cheese".'])

        self.assertEqual(out, 'e "Say \\"cheese\\"."\n')

    def test_crlf_is_preserved(self):
        source = 'e "Hello there."\r\nscene bg park\r\ne "Bye."\r\n'

        texts, mapping = self.parser.extract(source)
        self.assertEqual(texts, ["Hello there.", "Bye."])

        out = self.parser.reinsert(source, mapping, ["Bonjour.", "Au revoir."])
        self.assertEqual(out, 'e "Bonjour."\r\nscene bg park\r\ne "Au revoir."\r\n')

    def test_literals_in_comment_are_ignored(self):
        texts, _ = self.parser.extract('e "Hi there." # "not this"\n')

        self.assertEqual(texts, ["Hi there."])

    def test_several_literals_on_one_line(self):
        source = 'e "One." "Two."\n'

        texts, mapping = self.parser.extract(source)
        self.assertEqual(texts, ["One.", "Two."])
        self.assertEqual([m.string_index for m in mapping], [0, 1])

        out = self.parser.reinsert(source, mapping, ["One.", "Deux."])
        self.assertEqual(out, 'e "One." "Deux."\n')

    def test_single_quote_literal_keeps_quote(self):
        source = "e 'Good morning.'\n"
        _, mapping = self.parser.extract(source)

        out = self.parser.reinsert(source, mapping, ["It's morning."])

        self.assertEqual(out, "e 'It\\'s morning.'\n")

    def test_missing_texts_count_as_empty(self):
        source = 'e "Hello there."\n'
        _, mapping = self.parser.extract(source)

        self.assertEqual(self.parser.reinsert(source, mapping, []), 'e ""\n')

    def test_identity_reinsertion(self):
        source = (
            "label start:\n"
            '    scene bg park\n'
            '    e "Welcome back, {b}friend{/b}!"\n'
            '    "The wind was cold."\n'
            "    return\n"
        )

        texts, mapping = self.parser.extract(source)

        self.assertEqual(len(texts), 2)
        self.assertEqual(self.parser.reinsert(source, mapping, texts), source)
