"""Tests for the settings loader."""

import pytest

from config import SettingsError, load_settings_conf, validate_settings


def test_missing_secret_is_rejected(tmp_path):
    """jwt_secret has no default."""
    with pytest.raises(SettingsError) as exc_info:
        load_settings_conf(str(tmp_path), environ={})
    assert "jwt_secret" in str(exc_info.value)


def test_defaults_are_applied(tmp_path):
    settings = load_settings_conf(str(tmp_path), environ={'CATALOG_JWT_SECRET': 'abc'})

    assert settings['jwt_secret'] == 'abc'
    assert settings['max_upload_bytes'] == 5 * 1024 * 1024
    assert settings['bcrypt_rounds'] == 10
    assert settings['public_catalog_reads'] is True
    assert settings['delete_replaced_assets'] is False
    assert settings['allowed_origins'] == ['*']
    assert '.png' in settings['allowed_extensions']
    assert 'image/png' in settings['allowed_mime_types']


def test_environment_overrides_file(tmp_path):
    (tmp_path / 'settings.conf').write_text(
        "[DEFAULT]\n"
        "jwt_secret = from-file\n"
        "max_upload_bytes = 2048\n"
        "allowed_origin = https://shop.example.com\n"
    )
    settings = load_settings_conf(str(tmp_path), environ={'CATALOG_MAX_UPLOAD_BYTES': '4096'})

    assert settings['jwt_secret'] == 'from-file'
    assert settings['max_upload_bytes'] == 4096
    assert settings['allowed_origins'] == ['https://shop.example.com']


def test_list_settings_are_normalized():
    settings = validate_settings({
        'jwt_secret': 'x',
        'allowed_extensions': 'PNG, .Jpg',
        'allowed_mime_types': 'Image/PNG',
        'public_base_url': 'https://cdn.example.com/',
    })

    assert settings['allowed_extensions'] == ['.png', '.jpg']
    assert settings['allowed_mime_types'] == ['image/png']
    assert settings['public_base_url'] == 'https://cdn.example.com'


def test_invalid_values_are_all_reported():
    with pytest.raises(SettingsError) as exc_info:
        validate_settings({
            'jwt_secret': 'x',
            'max_upload_bytes': 'lots',
            'bcrypt_rounds': '2',
            'public_catalog_reads': 'maybe',
        })
    message = str(exc_info.value)
    assert "max_upload_bytes" in message
    assert "bcrypt_rounds" in message
    assert "public_catalog_reads" in message
