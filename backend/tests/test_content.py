"""
摘要与阅读时长
"""

from bizsite.core.content import ELLIPSIS, calculate_read_time, derive_excerpt, strip_markup


def words(n: int) -> str:
    return " ".join(["palabra"] * n)


def test_strip_markup_removes_tags_and_entities():
    assert strip_markup("<p>Hola&nbsp;<b>mundo</b></p>\n<br/>fin") == "Hola mundo fin"


def test_short_body_excerpt_has_no_ellipsis():
    assert derive_excerpt("<p>Texto corto</p>") == "Texto corto"


def test_long_body_excerpt_is_truncated_to_200_plus_ellipsis():
    excerpt = derive_excerpt(f"<h1>Título</h1><p>{'x' * 500}</p>")
    assert excerpt.endswith(ELLIPSIS)
    assert len(excerpt) <= 200 + len(ELLIPSIS)
    assert "<" not in excerpt and ">" not in excerpt


def test_excerpt_never_contains_markup_from_entities():
    excerpt = derive_excerpt("<p>&lt;script&gt;alert(1)&lt;/script&gt; texto</p>")
    assert "<" not in excerpt


def test_read_time_boundaries():
    assert calculate_read_time(words(200)) == 1
    assert calculate_read_time(words(201)) == 2
    assert calculate_read_time(words(400)) == 2


def test_read_time_is_at_least_one_minute():
    assert calculate_read_time("") == 1
    assert calculate_read_time("<p></p>") == 1


def test_read_time_ignores_markup():
    body = "<p>" + "</p><p>".join(["palabra"] * 200) + "</p>"
    assert calculate_read_time(body) == 1
