"""
Localization Service
Serves flat key -> value translation maps from JSON files or the database
"""
import json
import logging
from pathlib import Path
from typing import Dict, Optional
from sqlalchemy.orm import Session
import models
from config import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"


def detect_language(accept_language: str) -> str:
    """
    Detect the preferred language from an Accept-Language header.

    Only the first preference is considered; region and quality suffixes are
    dropped, e.g. "fr-FR,fr;q=0.9,en-US;q=0.8" -> "fr".

    Args:
        accept_language: Raw header value (may be empty)

    Returns:
        Lowercase primary language subtag, or DEFAULT_LANGUAGE
    """
    if not accept_language:
        return DEFAULT_LANGUAGE

    first = accept_language.split(",")[0].strip()
    first = first.split(";")[0].strip()
    if not first:
        return DEFAULT_LANGUAGE

    language = first.split("-")[0].strip().lower()
    return language or DEFAULT_LANGUAGE


class LocalizationService:
    """Translations lookup and import"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.translations_dir = Path(self.settings.TRANSLATIONS_DIR)

    def get_translations(self, language_code: str) -> Dict[str, object]:
        """
        Get all translations for a language.

        JSON files take precedence over the database. If neither source has
        entries for a non-default language, the default language is returned.

        Returns:
            {"language_code": ..., "translations": {key: value}}
        """
        if not language_code:
            language_code = DEFAULT_LANGUAGE

        translations = self._load_from_file(language_code)
        if translations:
            return {"language_code": language_code, "translations": translations}

        rows = self.db.query(models.Translation).filter(
            models.Translation.language_code == language_code
        ).all()
        translations = {row.key: row.value for row in rows}

        if not translations and language_code != DEFAULT_LANGUAGE:
            return self.get_translations(DEFAULT_LANGUAGE)

        return {"language_code": language_code, "translations": translations}

    def save_translation(self, language_code: str, key: str, value: str, commit: bool = True) -> models.Translation:
        """Insert or update a single translation."""
        translation = self.db.query(models.Translation).filter(
            models.Translation.language_code == language_code,
            models.Translation.key == key
        ).first()

        if translation:
            translation.value = value
        else:
            translation = models.Translation(language_code=language_code, key=key, value=value)
            self.db.add(translation)

        if commit:
            self.db.commit()
        return translation

    def import_translations_from_json(self, directory: Optional[str] = None) -> int:
        """
        Import every <lang>.json file of a directory into the database.

        Unreadable or malformed files are logged and skipped.

        Returns:
            Number of translations written

        Raises:
            FileNotFoundError: If the directory does not exist
        """
        path = Path(directory) if directory else self.translations_dir
        if not path.is_dir():
            raise FileNotFoundError(f"Translation directory not found: {path}")

        imported = 0
        for file_path in sorted(path.glob("*.json")):
            language_code = file_path.stem
            if not language_code:
                continue

            try:
                translations = json.loads(file_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping translation file {file_path}: {e}")
                continue

            for key, value in translations.items():
                self.save_translation(language_code, key, str(value), commit=False)
                imported += 1

            self.db.commit()
            logger.info(f"Imported translations from {file_path}")

        return imported

    def _load_from_file(self, language_code: str) -> Dict[str, str]:
        file_path = self.translations_dir / f"{language_code}.json"
        if not file_path.is_file():
            return {}
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read translation file {file_path}: {e}")
            return {}
        return {key: str(value) for key, value in data.items()}
