"""Tests for the markup tokenizer."""

from wikibot.markup import (
    LINK,
    TEMPLATE,
    is_builtin,
    parse_template,
    strip_modifiers,
    strip_nowiki,
    strip_parameters,
    templates,
    tokenize,
)


def triples(spans):
    return [(span.start, span.length, span.title) for span in spans]


class TestTokenizeTemplates:
    """Tests for template bracket matching."""

    def test_single_template(self):
        """A lone template should produce one span with its title."""
        spans = tokenize("Hello {{Foo|bar}} world")
        assert triples(spans) == [(6, 11, "Foo")]
        assert spans[0].terminated is True
        assert spans[0].is_reference is True

    def test_nested_templates(self):
        """Nested templates should be reported in document order."""
        assert triples(tokenize("{{a|{{b}}|c}}")) == [(0, 13, "a"), (4, 5, "b")]

    def test_sibling_templates(self):
        """Templates side by side should each get their own span."""
        assert triples(tokenize("{{a}} and {{b}}")) == [(0, 5, "a"), (10, 5, "b")]

    def test_deep_nesting(self):
        """Several levels of nesting should all be matched."""
        text = "{{a|{{b|{{c}}}}}}"
        assert triples(tokenize(text)) == [(0, 17, "a"), (4, 11, "b"), (8, 5, "c")]

    def test_unterminated_runs_to_end(self):
        """An opener without a closer should span to the end of the text."""
        spans = tokenize("text {{Foo|bar")
        assert triples(spans) == [(5, 9, "Foo")]
        assert spans[0].terminated is False

    def test_unterminated_outer_with_closed_inner(self):
        """The outer construct should not steal the inner construct's closer."""
        spans = tokenize("{{a|{{b}}")
        assert triples(spans) == [(0, 9, "a"), (4, 5, "b")]
        assert spans[0].terminated is False
        assert spans[1].terminated is True

    def test_triple_braces_yield_one_span(self):
        """{{{x}}} should match the innermost pair once."""
        assert triples(tokenize("{{{x}}}")) == [(1, 5, "x")]

    def test_title_ignores_pipes_in_nested_links(self):
        """A pipe inside a nested link should not split the title."""
        spans = tokenize("{{[[Foo|bar]]}}")
        assert spans[0].title == "[[Foo|bar]]"

    def test_title_is_stripped(self):
        """Whitespace and newlines around the title should be removed."""
        assert tokenize("{{ Infobox weapon\n| name = x }}")[0].title == "Infobox weapon"

    def test_no_templates(self):
        """Text without brackets should produce no spans."""
        assert tokenize("plain text } { ]]") == []

    def test_span_text_and_body(self):
        """Span.text and Span.body should slice the source buffer."""
        source = "x {{a|b}} y"
        span = tokenize(source)[0]
        assert span.end == 9
        assert span.text(source) == "{{a|b}}"
        assert span.body(source) == "a|b"


class TestBuiltins:
    """Tests for magic word and parser function detection."""

    def test_magic_word_is_not_reference(self):
        """Magic words should be reported but not as template references."""
        spans = tokenize("{{PAGENAME}}")
        assert spans[0].title == "PAGENAME"
        assert spans[0].is_reference is False

    def test_parser_function_is_not_reference(self):
        """Parser functions should be reported but not as template references."""
        spans = tokenize("{{#if: {{Foo}} | yes | no}}")
        assert spans[0].is_reference is False
        assert spans[1].title == "Foo"
        assert spans[1].is_reference is True

    def test_is_builtin(self):
        """is_builtin should be case-insensitive."""
        assert is_builtin("CurrentYear")
        assert is_builtin("int:lang")
        assert is_builtin("#switch: x")
        assert not is_builtin("Infobox")

    def test_modifiers_removed(self):
        """subst: and similar prefixes should not be part of the title."""
        assert tokenize("{{subst:Welcome}}")[0].title == "Welcome"
        assert tokenize("{{safesubst: msgnw:Foo}}")[0].title == "Foo"

    def test_strip_modifiers_leading_colon(self):
        """A leading colon (main namespace transclusion) should be dropped."""
        assert strip_modifiers(":Main Page") == "Main Page"
        assert strip_modifiers("subst:") == "subst:"

    def test_templates_filters_builtins(self):
        """templates() should only return real template references."""
        names = [span.title for span in templates("{{Foo}} {{CURRENTYEAR}} {{lc:X}} {{Bar}}")]
        assert names == ["Foo", "Bar"]


class TestTokenizeLinks:
    """Tests for link bracket matching."""

    def test_links(self):
        """Links should be found with their targets as titles."""
        spans = tokenize("See [[Foo|the foo]] and [[Category:X]].", LINK)
        assert [span.title for span in spans] == ["Foo", "Category:X"]
        assert all(span.brackets == LINK for span in spans)

    def test_nested_link_in_file(self):
        """A link inside an image caption should be found as well."""
        spans = tokenize("[[File:a.png|thumb|[[Link]] text]]", LINK)
        assert triples(spans) == [(0, 34, "File:a.png"), (19, 8, "Link")]

    def test_links_ignore_templates(self):
        """Template brackets should not produce link spans."""
        assert tokenize("{{Foo}}", LINK) == []

    def test_default_is_template(self):
        """The default bracket kind should be templates."""
        assert tokenize("[[Foo]]") == []
        assert tokenize("{{Foo}}")[0].brackets == TEMPLATE


class TestStripping:
    """Tests for offset-preserving stripping helpers."""

    def test_strip_nowiki(self):
        """<nowiki> sections should be blanked without shifting offsets."""
        text = "<nowiki>{{x}}</nowiki>{{y}}"
        stripped = strip_nowiki(text)
        assert len(stripped) == len(text)
        assert triples(tokenize(stripped)) == [(22, 5, "y")]

    def test_strip_parameters(self):
        """{{{parameter}}} placeholders should be blanked."""
        text = "{{Foo|{{{1}}}}}"
        stripped = strip_parameters(text)
        assert len(stripped) == len(text)
        assert [span.title for span in tokenize(stripped)] == ["Foo"]


class TestParseTemplate:
    """Tests for parse_template."""

    def test_named_and_positional(self):
        """Named parameters keep their names; positional ones count from 1."""
        params = parse_template("{{Infobox|name=Sword|sharp|heavy}}")
        assert list(params.items()) == [("name", "Sword"), ("1", "sharp"), ("2", "heavy")]

    def test_values_are_stripped(self):
        """Whitespace around names and values should be removed."""
        assert parse_template("{{T\n| name = X \n}}") == {"name": "X"}

    def test_nested_template_value(self):
        """Pipes and equals signs inside nested templates belong to the value."""
        params = parse_template("{{T|a={{b|c=d}}|e}}")
        assert params == {"a": "{{b|c=d}}", "1": "e"}

    def test_link_in_value(self):
        """A piped link inside a value should not split it."""
        assert parse_template("{{T|see=[[Foo|bar]]}}") == {"see": "[[Foo|bar]]"}

    def test_no_parameters(self):
        """A template without parameters should give an empty mapping."""
        assert parse_template("{{T}}") == {}
