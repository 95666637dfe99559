from fragment_editor.fixer import (
    DocumentTypography,
    fix_directives,
    repair_apostrophes,
    repair_dashes,
    repair_quotes,
    repair_whitespace,
)
from fragment_editor.index import element_id
from fragment_editor.ir import Directive, DocumentElement

def _elements(*texts):
    return [
        DocumentElement(id=element_id("Paragraph", i, t), text=t, type_name="Paragraph", original_index=i)
        for i, t in enumerate(texts)
    ]

def test_normalized_match_passes_through():
    fixed = fix_directives([Directive("It's a TEST", "x")], _elements("it’s a test, really"))
    assert len(fixed) == 1
    assert not fixed[0].was_fixed
    assert fixed[0].fragment == "It's a TEST"

def test_hyphen_repaired_to_unspaced_em_dash():
    fixed = fix_directives([Directive("foo - bar", "baz")], _elements("x foo—bar y"))
    assert fixed[0].was_fixed
    assert fixed[0].fragment == "foo—bar"
    assert fixed[0].fix_type == ["dash"]
    assert fixed[0].original_fragment == "foo - bar"

def test_empty_directives_are_dropped():
    directives = [Directive("", "x"), Directive("y", ""), Directive("...", "z"), Directive("ok", "fine")]
    fixed = fix_directives(directives, _elements("ok"))
    assert [f.directive_index for f in fixed] == [3]

def test_repairs_individually():
    spaced = DocumentTypography(dash=" — ")
    assert repair_dashes("a - b", spaced) == "a — b"
    assert repair_dashes("- a", spaced) == "— a"
    assert repair_dashes("well-known", spaced) == "well-known"
    assert repair_quotes('say "hi" now', DocumentTypography(quotes=("«", "»"))) == "say «hi» now"
    assert repair_quotes('say "hi" now', DocumentTypography(quotes=None)) == 'say "hi" now'
    assert repair_whitespace("  a  b  ", spaced) == "a b"
    assert repair_apostrophes("it`s ‘x’", DocumentTypography(apostrophe="’")) == "it’s ’x’"

def test_typography_detection():
    style = DocumentTypography.detect(["Il a dit « bonjour » — puis l’a quitté’s"])
    assert style.dash == " — "
    assert style.quotes == ("« ", " »")
    assert style.apostrophe == "’"

def test_assist_used_when_repairs_fail():
    def assist(fragment, elements):
        return "Brown Fox"
    fixed = fix_directives([Directive("brwn fx", "cat")], _elements("The Brown Fox"), assist=assist)
    assert fixed[0].was_fixed
    assert fixed[0].fragment == "Brown Fox"
    assert fixed[0].fix_type == ["semantic"]

def test_failing_assist_is_not_fatal():
    def assist(fragment, elements):
        raise RuntimeError("backend down")
    fixed = fix_directives([Directive("brwn fx", "cat")], _elements("The Brown Fox"), assist=assist)
    assert not fixed[0].was_fixed
    assert fixed[0].fragment == "brwn fx"
