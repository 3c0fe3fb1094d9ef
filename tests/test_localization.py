"""Language detection and translation lookup tests."""

import json

import pytest

import models
from config import Settings
from services.localization_service import LocalizationService, detect_language


@pytest.mark.parametrize("header, expected", [
    ("fr-FR,fr;q=0.9,en-US;q=0.8", "fr"),
    ("en-US", "en"),
    ("DE", "de"),
    ("fr;q=0.8", "fr"),
    ("", "en"),
    (None, "en"),
])
def test_detect_language(header, expected):
    assert detect_language(header) == expected


@pytest.fixture
def translations_dir(tmp_path):
    (tmp_path / "en.json").write_text(json.dumps({"greeting": "Hello", "bye": "Goodbye"}), encoding="utf-8")
    (tmp_path / "fr.json").write_text(json.dumps({"greeting": "Bonjour"}), encoding="utf-8")
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    return tmp_path


def test_file_translations_take_precedence(db_session, translations_dir):
    service = LocalizationService(db_session, Settings(TRANSLATIONS_DIR=str(translations_dir)))
    service.save_translation("fr", "greeting", "Salut")

    assert service.get_translations("fr") == {"language_code": "fr", "translations": {"greeting": "Bonjour"}}


def test_database_translations_and_default_fallback(db_session, tmp_path):
    service = LocalizationService(db_session, Settings(TRANSLATIONS_DIR=str(tmp_path)))
    service.save_translation("en", "greeting", "Hello")
    service.save_translation("en", "greeting", "Hi")

    assert service.get_translations("en")["translations"] == {"greeting": "Hi"}
    assert db_session.query(models.Translation).count() == 1

    fallback = service.get_translations("de")
    assert fallback["language_code"] == "en"
    assert fallback["translations"] == {"greeting": "Hi"}


def test_import_skips_unreadable_files(db_session, translations_dir):
    service = LocalizationService(db_session, Settings(TRANSLATIONS_DIR=str(translations_dir)))

    assert service.import_translations_from_json() == 3
    keys = {(t.language_code, t.key) for t in db_session.query(models.Translation).all()}
    assert keys == {("en", "greeting"), ("en", "bye"), ("fr", "greeting")}

    with pytest.raises(FileNotFoundError):
        service.import_translations_from_json(str(translations_dir / "missing"))


def test_translations_endpoint(client):
    response = client.get("/api/translations", headers={"Accept-Language": "fr-FR,fr;q=0.9"})
    assert response.status_code == 200
    body = response.json()
    assert body["language_code"] == "fr"
    assert body["translations"]["events.title"] == "Mes événements"

    response = client.get("/api/translations?lang=en", headers={"Accept-Language": "fr"})
    assert response.json()["translations"]["events.title"] == "My events"


def test_import_endpoint_requires_auth(client, make_user, auth_headers, db_session):
    assert client.post("/api/translations/import").status_code == 401

    response = client.post("/api/translations/import", headers=auth_headers(make_user()))
    assert response.status_code == 200
    assert response.json() == {"message": "Translations imported successfully"}
    assert db_session.query(models.Translation).filter_by(language_code="fr", key="events.title").one().value == "Mes événements"
