from interviews.fields import SKIPPED, extract_field_value, is_collected, next_missing_field


def test_extract_structured_fields() -> None:
    assert extract_field_value("email", "sure, it's mario.rossi@example.com") == "mario.rossi@example.com"
    assert extract_field_value("phone", "+39 333 445 9988") == "+39 333 445 9988"
    assert extract_field_value("linkedin", "here: https://linkedin.com/in/mario") == "https://linkedin.com/in/mario"


def test_extract_returns_none_when_value_missing() -> None:
    assert extract_field_value("email", "I will send it later") is None
    assert extract_field_value("phone", "call me later") is None
    assert extract_field_value("linkedin", "I am not on it") is None
    assert extract_field_value("name", "   ") is None


def test_free_text_fields_are_length_bounded() -> None:
    assert extract_field_value("name", "Mario Rossi.") == "Mario Rossi"
    assert extract_field_value("fullName", "A") is None
    assert extract_field_value("name", "x" * 80) is None
    assert extract_field_value("company", "Acme Industries, Milan") == "Acme Industries Milan"
    assert extract_field_value("role", "y" * 130) is None


def test_unknown_field_accepts_reply_verbatim() -> None:
    assert extract_field_value("budget", "around 50k per year") == "around 50k per year"


def test_next_missing_field_respects_declaration_order() -> None:
    fields = ["name", "email", "phone"]

    assert next_missing_field(fields, {}, {}) == "name"
    assert next_missing_field(fields, {"name": "Mario"}, {}) == "email"
    assert next_missing_field(fields, {"name": SKIPPED}, {}) == "email"
    assert next_missing_field(fields, {"name": "Mario"}, {"email": 3}) == "phone"
    assert next_missing_field(fields, {"name": "Mario", "email": "m@x.io", "phone": SKIPPED}, {}) is None


def test_is_collected() -> None:
    assert is_collected("Mario")
    assert not is_collected(SKIPPED)
    assert not is_collected("  ")
    assert not is_collected(None)
