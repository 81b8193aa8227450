from conceptlab.pipeline.resolver import ExactNameResolver

CANDIDATES = [("c1", "Being"), ("c2", " Becoming ")]


def test_exact_match_ignores_case_and_padding():
    resolver = ExactNameResolver()
    assert resolver.resolve("being", CANDIDATES) == "c1"
    assert resolver.resolve("  BECOMING", CANDIDATES) == "c2"


def test_near_misses_do_not_resolve():
    resolver = ExactNameResolver()
    assert resolver.resolve("Becomings", CANDIDATES) is None
    assert resolver.resolve("the Being", CANDIDATES) is None
    assert resolver.resolve("", CANDIDATES) is None
