from enactment_engine.config import EngineSettings
from enactment_engine.credentials import AWSAccount, load_accounts
from enactment_engine.models import Provider


def write_credentials(tmp_path, text):
    path = tmp_path / "credentials.properties"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_load_all_providers(tmp_path):
    path = write_credentials(
        tmp_path,
        "aws_access_key_id=AKIA\n"
        "aws_secret_access_key=secret\n"
        "aws_session_token=session\n"
        "google_sa_key=google\n"
        "azure_key=azure\n"
        "ibm_api_key=ibm\n",
    )

    accounts = load_accounts(path, environ={})

    assert list(accounts.configured()) == [Provider.GOOGLE, Provider.AZURE, Provider.AWS, Provider.IBM]
    assert accounts.aws == AWSAccount("AKIA", "secret", "session")
    assert accounts.azure.function_key == "azure"


def test_environment_overrides_file(tmp_path):
    path = write_credentials(tmp_path, "azure_key=from-file\n")

    accounts = load_accounts(path, environ={"AZURE_KEY": "from-env", "IBM_API_KEY": "ibm"})

    assert accounts.azure.function_key == "from-env"
    assert accounts.has(Provider.IBM)
    assert not accounts.has(Provider.GOOGLE)


def test_incomplete_aws_credentials(tmp_path):
    path = write_credentials(tmp_path, "aws_access_key_id=AKIA\ngoogle_sa_key=g\n")

    accounts = load_accounts(path, environ={})

    assert accounts.aws is None
    assert list(accounts.configured()) == [Provider.GOOGLE]


def test_missing_file_yields_no_accounts(tmp_path):
    accounts = load_accounts(str(tmp_path / "missing.properties"), environ={})
    assert accounts.is_empty
    assert accounts.get(None) is None


def test_settings_from_environment():
    settings = EngineSettings.from_env(
        {
            "ENACTMENT_CREDENTIALS": "/etc/creds",
            "ENACTMENT_HIDE_CREDENTIALS": "yes",
            "ENACTMENT_HTTP_TIMEOUT": "12.5",
            "ENACTMENT_LARGE_INPUT": "3",
        }
    )

    assert settings.credentials_path == "/etc/creds"
    assert settings.hide_credentials is True
    assert settings.http_timeout == 12.5
    assert settings.large_input_threshold == 3
    assert settings.large_result_threshold == 100000
    assert settings.log_level == "INFO"
