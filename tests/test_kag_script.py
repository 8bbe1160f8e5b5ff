import unittest

from textbridge.kag_script import (
    KIND_ATTRIBUTE,
    KIND_BARE,
    KIND_CNAME,
    KIND_EMB,
    KIND_EVAL,
    KIND_QUOTATION,
    KAGScriptParser,
    is_kag_garbage,
    match_line,
)


class TestMatchers(unittest.TestCase):
    def _kinds(self, line):
        return [(text, record.extract_kind) for text, record in match_line(0, line)]

    def test_eval_variable(self):
        found = match_line(0, "@eval exp=\"sf.name='太郎'\"")

        self.assertEqual(len(found), 1)
        text, record = found[0]
        self.assertEqual(text, "太郎")
        self.assertEqual(record.extract_kind, KIND_EVAL)
        self.assertEqual(record.variable_path, "sf.name")
        self.assertEqual(record.quote, "'")

    def test_tag_attribute(self):
        found = match_line(0, '[link target=*yes text="はい"]')

        self.assertEqual(found[0][0], "はい")
        self.assertEqual(found[0][1].extract_kind, KIND_ATTRIBUTE)
        self.assertEqual(found[0][1].attribute, "text")

    def test_emb_line(self):
        self.assertEqual(self._kinds('[emb exp="sf.name"]、こんにちは[r]'),
                         [("、こんにちは", KIND_EMB)])

    def test_cname_line(self):
        self.assertEqual(self._kinds('[cname chara="yuko"]おはよう[p]'),
                         [("おはよう", KIND_CNAME)])

    def test_quotation_spans_have_ordinals(self):
        found = match_line(0, "「こんにちは」「さようなら」")

        self.assertEqual([t for t, _ in found], ["こんにちは", "さようなら"])
        self.assertEqual([r.string_index for _, r in found], [0, 1])
        self.assertTrue(all(r.extract_kind == KIND_QUOTATION for _, r in found))

    def test_bare_line(self):
        self.assertEqual(self._kinds("今日はいい天気だ。[p]"), [("今日はいい天気だ。", KIND_BARE)])
        self.assertEqual(self._kinds("It is sunny today.[p]"),
                         [("It is sunny today.", KIND_BARE)])

    def test_syntax_only_lines_yield_nothing(self):
        for line in ("[r]", "[wait time=200]", "ab", "12"):
            with self.subTest(line=line):
                self.assertEqual(match_line(0, line), [])

    def test_garbage(self):
        for text in ("", "§", "【注意】", "123", "return", "@wait"):
            with self.subTest(text=text):
                self.assertTrue(is_kag_garbage(text))
        self.assertFalse(is_kag_garbage("こんにちは"))


class TestKAGScriptParser(unittest.TestCase):
    def setUp(self):
        self.parser = KAGScriptParser()

    def test_two_quotations_on_one_line(self):
        source = "「こんにちは」「さようなら」\n"

        texts, mapping = self.parser.extract(source)

        self.assertEqual(texts, ["こんにちは", "さようなら"])
        self.assertEqual(self.parser.reinsert(source, mapping, ["Hello", "Goodbye"]),
                         "「Hello」「Goodbye」\n")

    def test_edit_containing_closing_bracket(self):
        source = "「あ」「い」"
        _, mapping = self.parser.extract(source)

        out = self.parser.reinsert(source, mapping, ["A」B", "C"])

        self.assertEqual(out, "「A」B」「C」")

    def test_each_kind_reinserts_in_place(self):
        source = (
            "@eval exp=\"sf.name='太郎'\"\n"
            '[link target=*yes text="はい"]\n'
            '[cname chara="yuko"]おはよう[p]\n'
            '[emb exp="sf.name"]、こんにちは[r]\n'
            "今日はいい天気だ。[p]\n"
        )

        texts, mapping = self.parser.extract(source)
        self.assertEqual(texts, ["太郎", "はい", "おはよう", "、こんにちは", "今日はいい天気だ。"])

        out = self.parser.reinsert(
            source, mapping, ["Taro", "Yes", "Morning", ", hello", "Nice weather today."])
        self.assertEqual(out, (
            "@eval exp=\"sf.name='Taro'\"\n"
            '[link target=*yes text="Yes"]\n'
            '[cname chara="yuko"]Morning[p]\n'
            '[emb exp="sf.name"], hello[r]\n'
            "Nice weather today.[p]\n"
        ))

    def test_comments_labels_and_iscript_are_skipped(self):
        source = (
            ";「コメント」\n"
            "*start|「タイトル」\n"
            "[iscript]\n"
            "var msg = 'テスト';\n"
            "[endscript]\n"
            "「本文」\n"
        )

        texts, mapping = self.parser.extract(source)

        self.assertEqual(texts, ["本文"])
        self.assertEqual(mapping[0].line_index, 5)

    def test_at_form_iscript_block(self):
        source = "@iscript\nf.x = '名前';\n@endscript\n「本文」\n"

        texts, _ = self.parser.extract(source)

        self.assertEqual(texts, ["本文"])

    def test_macro_text_is_extracted_by_default(self):
        source = "[macro name=greet]\n「ようこそ」\n[endmacro]\n「本文」\n"

        texts, _ = self.parser.extract(source)

        self.assertEqual(texts, ["ようこそ", "本文"])

    def test_macro_text_can_be_skipped(self):
        source = "@macro name=greet\n「ようこそ」\n@endmacro\n「本文」\n"
        self.parser.extract_macro_text = False

        texts, _ = self.parser.extract(source)

        self.assertEqual(texts, ["本文"])

    def test_unclosed_macro_is_flushed(self):
        texts, _ = self.parser.extract("[macro name=x]\n「ようこそ」\n")

        self.assertEqual(texts, ["ようこそ"])

    def test_identity_reinsertion_keeps_crlf(self):
        source = "*start\r\n[cm]\r\n太郎「元気？」[p]\r\n\r\n[s]\r\n"

        texts, mapping = self.parser.extract(source)

        self.assertEqual(texts, ["元気？"])
        self.assertEqual(self.parser.reinsert(source, mapping, texts), source)

    def test_character_ids_on_tag_lines_are_not_text(self):
        source = (
            '@chara_new name="akane" storage="chara/akane.png"\n'
            '[chara_show name="akane"]\n'
            "「こんにちは」\n"
        )

        texts, mapping = self.parser.extract(source)

        self.assertEqual(texts, ["こんにちは"])
        self.assertEqual(mapping[0].line_index, 2)

    def test_name_attribute_beside_prose_is_text(self):
        found = match_line(0, '[nm name="アカネ"]おはよう')

        self.assertEqual([(t, r.attribute) for t, r in found], [("アカネ", "name")])

    def test_attribute_switches_quote_for_embedded_quote(self):
        source = '[link target=*yes text="はい"]\n'
        _, mapping = self.parser.extract(source)

        out = self.parser.reinsert(source, mapping, ['Say "yes"'])

        self.assertEqual(out, "[link target=*yes text='Say \"yes\"']\n")

    def test_attribute_with_both_quotes_is_left_alone(self):
        source = '[link target=*yes text="はい"]\n'
        _, mapping = self.parser.extract(source)

        with self.assertLogs("textbridge.kag_script", level="DEBUG"):
            out = self.parser.reinsert(source, mapping, ['It\'s "ok"'])

        self.assertEqual(out, source)

    def test_eval_value_escapes_its_quote(self):
        source = "@eval exp=\"sf.name='太郎'\"\n"
        _, mapping = self.parser.extract(source)

        out = self.parser.reinsert(source, mapping, ["It's Taro"])

        self.assertEqual(out, "@eval exp=\"sf.name='It\\'s Taro'\"\n")

    def test_eval_value_with_outer_quote_is_left_alone(self):
        source = "@eval exp=\"sf.name='太郎'\"\n"
        _, mapping = self.parser.extract(source)

        with self.assertLogs("textbridge.kag_script", level="DEBUG"):
            out = self.parser.reinsert(source, mapping, ['The "hero"'])

        self.assertEqual(out, source)

    def test_newlines_in_edits_become_line_breaks(self):
        source = "今日はいい天気だ。[p]\n「こんにちは」\n"
        _, mapping = self.parser.extract(source)

        out = self.parser.reinsert(source, mapping, ["Nice day.\nIsn't it?", "Hi\r\nthere"])

        self.assertEqual(out, "Nice day.[r]Isn't it?[p]\n「Hi[r]there」\n")
