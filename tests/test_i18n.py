from cortex_exam.i18n import (
    ensure_language_code,
    generation_locale,
    get_language_choices,
    language_label,
    normalise_language_code,
    translate_text,
)


def test_normalise_accepts_codes_and_locales():
    assert normalise_language_code("english") == "ENGLISH"
    assert normalise_language_code("pt-BR") == "PORTUGUESE"
    assert normalise_language_code("en_us") == "ENGLISH"
    assert normalise_language_code("pt") == "PORTUGUESE"
    assert normalise_language_code("klingon") is None
    assert normalise_language_code(None) is None


def test_unknown_language_falls_back_to_default():
    assert ensure_language_code("klingon") == "PORTUGUESE"
    assert generation_locale(None) == "pt-BR"
    assert generation_locale("ENGLISH") == "en-US"


def test_translate_text_formats_placeholders():
    assert translate_text("Exam ended due to time.", "ENGLISH") == "Exam ended due to time."
    assert (
        translate_text("Exam ended due to time.", "PORTUGUESE")
        == "O exame foi encerrado por tempo esgotado."
    )
    assert translate_text("{count} flashcards generated.", "PT", count="3") == "3 flashcards gerados."


def test_language_choices_and_labels():
    codes = [choice["code"] for choice in get_language_choices()]

    assert codes == ["PORTUGUESE", "ENGLISH"]
    assert language_label("ENGLISH").endswith("English")
