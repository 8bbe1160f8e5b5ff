import unittest

from textbridge.script_strings import (
    KIND_CONCAT,
    KIND_KEY_VALUE,
    KIND_PLUGIN_ARG,
    KIND_QUOTED,
    KIND_TEMPLATE,
    apply_script_edits,
    find_script_strings,
    render_script_literal,
)


def _rewrite(source, found, text):
    replacement = render_script_literal(found.kind, found.original_match, found.quote, text)
    edits = [(start, end, found.original_match, replacement) for start, end in found.spans]
    return apply_script_edits(source, edits)


class TestFindScriptStrings(unittest.TestCase):
    def test_concatenation_chain_is_one_unit(self):
        source = 'ShowText("Hello" + " " + "World")'

        found = find_script_strings(source)

        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].text, "Hello World")
        self.assertEqual(found[0].kind, KIND_CONCAT)
        self.assertEqual(found[0].original_match, '"Hello" + " " + "World"')
        self.assertEqual(found[0].spans, [[9, 32]])

    def test_concatenation_chain_rewrites_as_single_literal(self):
        source = 'ShowText("Hello" + " " + "World")'
        found = find_script_strings(source)[0]

        self.assertEqual(_rewrite(source, found, "Bonjour Monde"), 'ShowText("Bonjour Monde")')

    def test_template_literal(self):
        source = "var t = `Hello ${name}!`;"

        found = find_script_strings(source)

        self.assertEqual([(f.text, f.kind) for f in found], [("Hello ${name}!", KIND_TEMPLATE)])
        self.assertEqual(_rewrite(source, found[0], "Salut ${name} !"),
                         "var t = `Salut ${name} !`;")

    def test_plugin_call_argument_values_only(self):
        source = 'LogWindow {"text": "The door is locked.", "wait": 30}'

        found = find_script_strings(source)

        self.assertEqual([(f.text, f.kind) for f in found],
                         [("The door is locked.", KIND_PLUGIN_ARG)])
        self.assertEqual(_rewrite(source, found[0], "La porte est fermée."),
                         'LogWindow {"text": "La porte est fermée.", "wait": 30}')

    def test_key_value_keeps_key(self):
        source = '$gameMessage.add({text: "Where am I?"})'

        found = find_script_strings(source)

        self.assertEqual(found[0].kind, KIND_KEY_VALUE)
        self.assertEqual(found[0].text, "Where am I?")
        self.assertEqual(_rewrite(source, found[0], "Où suis-je ?"),
                         '$gameMessage.add({text: "Où suis-je ?"})')

    def test_quoted_string_keeps_quote_character(self):
        source = "$gameMessage.add('Good morning!')"

        found = find_script_strings(source)

        self.assertEqual(found[0].kind, KIND_QUOTED)
        self.assertEqual(found[0].quote, "'")
        self.assertEqual(_rewrite(source, found[0], "It's late"),
                         "$gameMessage.add('It\\'s late')")

    def test_object_keys_are_not_text(self):
        found = find_script_strings('$gameTemp.popup({"text": "Hello there!", "icon": 5})')

        self.assertEqual([(f.text, f.kind) for f in found], [("Hello there!", KIND_QUOTED)])

    def test_ternary_branches_are_both_found(self):
        found = find_script_strings('$gameSwitches.value(1) ? "Open it" : "Leave it"')

        self.assertEqual([f.text for f in found], ["Open it", "Leave it"])

    def test_asset_names_and_garbage_are_skipped(self):
        self.assertEqual(find_script_strings('ImageManager.loadPicture("door_open.png")'), [])
        self.assertEqual(find_script_strings('AudioManager.playSe({name: "Door1.ogg"})'), [])
        self.assertEqual(find_script_strings('$gameVariables.setValue(1, "42")'), [])

    def test_repeated_value_collects_every_span(self):
        source = '$gameMessage.add("Hello!"); log("Hello!")'

        found = find_script_strings(source)

        self.assertEqual(len(found), 1)
        self.assertEqual(len(found[0].spans), 2)
        self.assertEqual(_rewrite(source, found[0], "Salut !"),
                         '$gameMessage.add("Salut !"); log("Salut !")')

    def test_empty_and_non_string_sources(self):
        self.assertEqual(find_script_strings(""), [])
        self.assertEqual(find_script_strings(None), [])


class TestApplyScriptEdits(unittest.TestCase):
    def test_mismatched_span_is_skipped(self):
        source = 'say("Hi there")'

        result = apply_script_edits(source, [(4, 14, '"Bye"', '"X"')])

        self.assertEqual(result, source)

    def test_edits_apply_right_to_left(self):
        source = 'a("one") + b("two")'
        edits = [(2, 7, '"one"', '"first"'), (13, 18, '"two"', '"second"')]

        self.assertEqual(apply_script_edits(source, edits), 'a("first") + b("second")')
