from babel import Locale

import logging
import re

logger = logging.getLogger(__name__)


def create_values_modifier_from_lang_code(lang_code: str) -> str:
    """
    Convert a PoEditor language code into an Android resource qualifier.

    PoEditor uses lower-case BCP 47 style codes while Android expects either the
    legacy "lang-rREGION" qualifier or the "b+" BCP 47 form:

    Examples:
      - "es"      -> "es"
      - "pt-br"   -> "pt-rBR"
      - "zh-hans" -> "b+zh+Hans"
      - "es-419"  -> "b+es+419"

    Args:
        lang_code: Language code as returned by PoEditor

    Returns:
        The qualifier to append to "values-" for that language
    """
    parts = [part for part in re.split(r"[-_]", lang_code) if part]
    if len(parts) <= 1:
        return lang_code

    language, region = parts[0].lower(), parts[1]
    if len(parts) == 2 and len(region) == 2 and region.isalpha():
        return f"{language}-r{region.upper()}"

    subtags = [language]
    for part in parts[1:]:
        if len(part) == 4 and part.isalpha():
            subtags.append(part.title())  # script
        else:
            subtags.append(part.upper())
    return "b+" + "+".join(subtags)


def get_language_name(locale_code: str) -> str:
    """
    Get language name from various locale code formats using Babel.
    Handles PoEditor codes and Android resource qualifiers (standard and BCP 47).

    Args:
        locale_code: A string representing a locale code in various formats:
                    - Language code (e.g., 'en', 'zh')
                    - PoEditor code with region (e.g., 'pt-br', 'zh-hans')
                    - Android standard qualifier (e.g., 'en-rUS', 'zh-rCN')
                    - Android BCP 47 qualifier (e.g., 'b+en+US', 'b+zh+CN')

    Returns:
        A string with the display name of the language in English, including region if available.
        Returns the original locale_code if parsing fails.
    """
    try:
        normalized_code = re.sub(r"^b\+", "", locale_code)
        normalized_code = re.sub(r"-r([A-Z]{2})$", r"_\1", normalized_code)
        normalized_code = re.sub(r"[-+]", "_", normalized_code)

        locale = Locale.parse(normalized_code)
        return locale.get_display_name(locale="en")

    except Exception as e:
        logger.warning(
            f"Could not determine language name for locale '{locale_code}': {e}"
        )
        return locale_code
