"""
Internationalization (i18n) module for the domain search system.

Provides translations for all user-facing messages in English (en) and
Japanese (ja), including the remediation hints attached to service errors.
"""

from typing import Optional


SUPPORTED_LANGUAGES = frozenset({"en", "ja"})
DEFAULT_LANGUAGE = "en"


# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Query validation
    "query.required": {
        "en": "Query is required",
        "ja": "検索キーワードを入力してください",
    },

    # Service errors
    "service.provider_not_configured": {
        "en": "Domain search service is not configured",
        "ja": "ドメイン検索サービスが設定されていません",
    },
    "service.provider_not_configured.hint": {
        "en": "Set the Domainr API key (DOMAINR_API_KEY or domainr.api_key in the configuration file).",
        "ja": "Domainr APIキー（DOMAINR_API_KEY または設定ファイルの domainr.api_key）を設定してください。",
    },
    "service.provider_rejected": {
        "en": "Domain search service rejected the configured API key",
        "ja": "ドメイン検索サービスが設定済みのAPIキーを拒否しました",
    },
    "service.provider_rejected.hint": {
        "en": "Check that the Domainr API key is valid and its RapidAPI subscription is active.",
        "ja": "Domainr APIキーが有効で、RapidAPIのサブスクリプションが有効であることを確認してください。",
    },
    "service.provider_unreachable": {
        "en": "Domain search service is temporarily unavailable",
        "ja": "ドメイン検索サービスが一時的に利用できません",
    },
    "service.provider_unreachable.hint": {
        "en": "The Domainr API could not be reached. Try again in a few minutes.",
        "ja": "Domainr APIに接続できませんでした。しばらくしてから再度お試しください。",
    },

    # WHOIS
    "whois.not_configured": {
        "en": "API key not configured",
        "ja": "APIキーが設定されていません",
    },
    "whois.not_configured.hint": {
        "en": "Please configure the WHOIS API key (WHOIS_API_KEY).",
        "ja": "WHOIS APIキー（WHOIS_API_KEY）を設定してください。",
    },
    "whois.fetch_failed": {
        "en": "Failed to fetch WHOIS data",
        "ja": "WHOIS情報の取得に失敗しました",
    },

    # Availability status
    "status.available": {
        "en": "Available",
        "ja": "取得可能",
    },
    "status.taken": {
        "en": "Taken",
        "ja": "取得済み",
    },
    "status.unknown": {
        "en": "Unknown",
        "ja": "不明",
    },

    # CLI
    "cli.searching": {
        "en": "Searching domains for: {query}",
        "ja": "ドメインを検索中: {query}",
    },
    "cli.found": {
        "en": "Found {count} domain(s)",
        "ja": "{count} 件のドメインが見つかりました",
    },
    "cli.no_results": {
        "en": "No domains found",
        "ja": "ドメインが見つかりませんでした",
    },
    "cli.register_at": {
        "en": "Register at {registrar}: {price} {currency}",
        "ja": "{registrar} で登録: {price} {currency}",
    },
    "cli.whois_on_demand": {
        "en": "WHOIS available via: domain-search whois {domain}",
        "ja": "WHOIS情報: domain-search whois {domain}",
    },
    "simulation.enabled": {
        "en": "Simulation mode enabled - no real network requests",
        "ja": "シミュレーションモード - 実際の通信は行いません",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'query.required')
        language: Language code ('en' or 'ja'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('status.available', 'en')
        'Available'
        >>> get_message('cli.found', 'en', count=3)
        'Found 3 domain(s)'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language) or translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            pass

    return message


def resolve_language(language: Optional[str]) -> str:
    """
    Map a request language (e.g. 'ja-JP', 'en_US') to a supported language.
    """
    if not language:
        return DEFAULT_LANGUAGE
    primary = language.replace("_", "-").split("-", 1)[0].strip().lower()
    return primary if primary in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def get_missing_translations(language: str) -> set[str]:
    """Get all message keys that are missing translations for a language."""
    return {
        key for key, translations in TRANSLATIONS.items()
        if language not in translations
    }


def validate_translations() -> dict[str, set[str]]:
    """Map each supported language to its missing message keys."""
    return {
        language: get_missing_translations(language)
        for language in SUPPORTED_LANGUAGES
    }
