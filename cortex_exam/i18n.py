"""Lightweight internationalisation helpers for exam messages."""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable

DEFAULT_LANGUAGE = "PORTUGUESE"

SUPPORTED_LANGUAGES: dict[str, dict[str, str]] = {
    "PORTUGUESE": {"label": "Português", "icon": "🇧🇷", "locale": "pt-BR"},
    "ENGLISH": {"label": "English", "icon": "🇺🇸", "locale": "en-US"},
}


TRANSLATIONS: dict[str, dict[str, str]] = {
    "PORTUGUESE": {
        "An exam in progress was found. Do you want to continue where you left off?": "Encontramos um exame em andamento. Deseja continuar de onde parou?",
        "Could not restore the previous session.": "Não foi possível restaurar a sessão anterior.",
        "Exam ended due to time.": "O exame foi encerrado por tempo esgotado.",
        "Exam submitted successfully.": "Exame enviado com sucesso.",
        "Exam session already finished.": "A sessão do exame já foi encerrada.",
        "No exam in progress.": "Nenhum exame em andamento.",
        "No saved exam to restore.": "Nenhum exame salvo para restaurar.",
        "Attempt not found.": "Tentativa não encontrada.",
        "Failed to generate the exam. The AI may be overloaded or the provided content may be invalid. Try again.": "Falha ao gerar o exame. A IA pode estar sobrecarregada ou o conteúdo fornecido pode ser inválido. Tente novamente.",
        "Please provide an exam code and at least one study material.": "Por favor, forneça um código de exame e pelo menos um material de estudo.",
        "{count} flashcards generated.": "{count} flashcards gerados.",
    },
}

_LOCALE_ALIASES: dict[str, str] = {
    meta["locale"].upper(): code for code, meta in SUPPORTED_LANGUAGES.items()
}
_LOCALE_ALIASES.update({"PT": "PORTUGUESE", "EN": "ENGLISH"})


def normalise_language_code(language: str | None) -> str | None:
    """Return a canonical language code if supported.

    Accepts either the code itself (``ENGLISH``) or a locale (``en-US``).
    """

    if not language:
        return None
    code = language.strip().upper().replace("_", "-")
    if code in SUPPORTED_LANGUAGES:
        return code
    return _LOCALE_ALIASES.get(code)


def ensure_language_code(language: str | None) -> str:
    """Return a supported language code, defaulting when unknown."""

    normalised = normalise_language_code(language)
    return normalised or DEFAULT_LANGUAGE


def generation_locale(language: str | None) -> str:
    """Locale tag sent to the question generator."""

    return SUPPORTED_LANGUAGES[ensure_language_code(language)]["locale"]


def translate_text(text: str, language: str, **format_values: str) -> str:
    """Translate the given string for the requested language."""

    catalogue = TRANSLATIONS.get(ensure_language_code(language), {})
    translated = catalogue.get(text, text)
    if format_values:
        try:
            return translated.format(**format_values)
        except (KeyError, IndexError):
            return translated
    return translated


@lru_cache(maxsize=None)
def get_language_choices() -> list[dict[str, str]]:
    return [
        {"code": code, **meta}
        for code, meta in SUPPORTED_LANGUAGES.items()
    ]


def language_label(language: str) -> str:
    code = ensure_language_code(language)
    meta = SUPPORTED_LANGUAGES[code]
    icon = meta.get("icon", "")
    label = meta.get("label", code.title())
    return f"{icon} {label}".strip()


__all__: Iterable[str] = [
    "DEFAULT_LANGUAGE",
    "SUPPORTED_LANGUAGES",
    "TRANSLATIONS",
    "ensure_language_code",
    "generation_locale",
    "get_language_choices",
    "language_label",
    "normalise_language_code",
    "translate_text",
]
