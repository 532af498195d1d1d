from sitebundle.models import MappingEntry
from sitebundle.services.rewriter import PatternReferenceRewriter


def _rewrite(html, *pairs):
    mapping = [MappingEntry(path, url, "h") for path, url in pairs]
    return PatternReferenceRewriter().rewrite(html, mapping)


def test_rewrites_all_three_contexts_every_occurrence():
    html = (
        '<img src="img/a.png"><img src=\'img/a.png\'>'
        '<a href="img/a.png">x</a>'
        "<style>.a{background:url(img/a.png)} .b{background:url('img/a.png')} "
        '.c{background:url( "img/a.png" )}</style>'
    )
    out, subs = _rewrite(html, ("img/a.png", "https://cdn/a.png"))

    assert "img/a.png" not in out
    assert out.count("https://cdn/a.png") == 6
    assert "src='https://cdn/a.png'" in out
    assert "url(https://cdn/a.png)" in out
    assert "url('https://cdn/a.png')" in out
    assert 'url("https://cdn/a.png")' in out
    assert subs[0].count == 6


def test_regex_metacharacters_are_escaped():
    html = '<img src="img/a+b.png"><img src="img/aab.png"><img src="img/a.b(1).png">'
    out, _ = _rewrite(html, ("img/a+b.png", "U1"), ("img/a.b(1).png", "U2"))
    assert out == '<img src="U1"><img src="img/aab.png"><img src="U2">'


def test_only_literal_spelling_is_rewritten():
    html = '<img src="./img/a.png"><img src="IMG/A.PNG"><img src="img/a.png.bak">'
    out, subs = _rewrite(html, ("img/a.png", "U"))
    assert out == html
    assert subs[0].count == 0


def test_mismatched_quotes_are_left_alone():
    html = """<img src="img/a.png'>"""
    out, _ = _rewrite(html, ("img/a.png", "U"))
    assert out == html


def test_whitespace_around_equals_is_tolerated():
    out, _ = _rewrite('<link href = "css/site.css">', ("css/site.css", "U"))
    assert out == '<link href="U">'


def test_replacement_url_with_backslashes_is_literal():
    out, _ = _rewrite('<img src="a.png">', ("a.png", r"https://cdn/\1/a.png"))
    assert out == r'<img src="https://cdn/\1/a.png">'
