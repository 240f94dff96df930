from colorbook.services.i18n import coerce_localized, has_text, merge_localized, pick_text, unsupported_languages


def test_coerce_accepts_every_shape():
    assert coerce_localized(None) == {}
    assert coerce_localized("  ") == {}
    assert coerce_localized("猫", "zh") == {"zh": "猫"}
    assert coerce_localized('{"en": "Cat", "zh": ""}') == {"en": "Cat"}
    assert coerce_localized({"en": "Cat", "ja": None}) == {"en": "Cat"}
    assert coerce_localized("{not json", "en") == {"en": "{not json"}


def test_pick_text_fallback_order():
    value = {"zh": "猫", "en": "Cat", "fr": "Chat"}
    assert pick_text(value, "fr") == "Chat"
    assert pick_text(value, "de") == "Cat"
    assert pick_text({"zh": "猫", "ja": "ねこ"}, "de") == "猫"
    assert pick_text({"ja": "ねこ"}) == "ねこ"
    assert pick_text({"en": "  "}) == ""
    assert pick_text(None) == ""


def test_merge_never_erases():
    merged = merge_localized({"zh": "猫", "en": "Cat"}, {"en": "", "ja": "ねこ"})
    assert merged == {"zh": "猫", "en": "Cat", "ja": "ねこ"}
    assert has_text(merged)
    assert not has_text({})


def test_unsupported_languages():
    assert unsupported_languages(["en", "xx", "zh", "tlh"]) == ["xx", "tlh"]
