import json

import pytest

from conftest import ANTHROPIC_KEY, OPENAI_KEY, RecordingTransport, json_responder, openai_envelope
from lettersmith.core.config import load_settings
from lettersmith.core.directory import JsonCandidateDirectory
from lettersmith.core.errors import ConfigurationError, ParseError
from lettersmith.core.models import RepresentativeOption, Tone
from lettersmith.pipelines.letter_pipeline import LetterPipeline, LetterPipelineConfig
from lettersmith.providers.anthropic_client import AnthropicClient
from lettersmith.providers.openai_client import OpenAIClient
import write_letter

DIRECTORY = {
    "94110": [
        {"id": 1, "name": "Jane Doe", "title": "Senator", "state": "CA", "party": "Democratic"},
        {"id": 2, "name": "John Q", "title": "Representative", "state": "CA", "district": "12"},
    ],
    "ny": [{"id": 7, "name": "Pat Lee", "title": "Assemblymember", "state": "NY"}],
}


@pytest.fixture
def directory_file(tmp_path):
    path = tmp_path / "representatives.json"
    path.write_text(json.dumps(DIRECTORY), encoding="utf-8")
    return path


@pytest.fixture
def pipeline_config(tmp_path, directory_file):
    def _make(**overrides):
        fields = dict(
            main_issue="Public transit funding",
            specific_concern="Bus routes are being cut",
            requested_action="Vote for the transit bill",
            user_name="Alex Rivera",
            user_zip_code="94110",
            provider="openai",
            api_key=OPENAI_KEY,
            representatives_file=directory_file,
            output_dir=tmp_path / "letters",
        )
        fields.update(overrides)
        return LetterPipelineConfig(**fields)

    return _make


def openai_client_for(transport, prompt_builder):
    return OpenAIClient(
        OPENAI_KEY,
        prompt_builder=prompt_builder,
        base_url="https://api.openai.com/v1",
        http_client=transport.sync_client(),
        async_http_client=transport.async_client(),
    )


# =============================================================================
# CANDIDATE DIRECTORY
# =============================================================================

def test_directory_lookup(directory_file):
    directory = JsonCandidateDirectory(directory_file)
    reps = directory.get_candidates("94110")
    assert [r.id for r in reps] == [1, 2]
    assert reps[1].district == "12"
    assert directory.get_candidates(" NY ")[0] == RepresentativeOption(
        id=7, name="Pat Lee", title="Assemblymember", state="NY"
    )
    assert directory.get_candidates("10001") == []


def test_directory_wildcard(tmp_path):
    path = tmp_path / "reps.json"
    path.write_text(json.dumps({"*": [{"id": 3, "name": "Any One", "title": "Mayor", "state": "CA"}]}), encoding="utf-8")
    assert JsonCandidateDirectory(path).get_candidates("99999")[0].id == 3


def test_directory_returns_copies(directory_file):
    directory = JsonCandidateDirectory(directory_file)
    directory.get_candidates("94110").clear()
    assert len(directory.get_candidates("94110")) == 2


@pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"94110": {"id": 1}}', '{"94110": [{"name": "No Id"}]}'])
def test_directory_rejects_bad_files(tmp_path, content):
    path = tmp_path / "reps.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        JsonCandidateDirectory(path)


def test_directory_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="does not exist"):
        JsonCandidateDirectory(tmp_path / "nope.json")


# =============================================================================
# PIPELINE
# =============================================================================

def test_pipeline_writes_letter(pipeline_config, prompt_builder, tmp_path):
    text = "SELECTED_REPRESENTATIVE_ID: 1\n\nDear Jane Doe,\n\nPlease keep the buses running.\n\nAlex Rivera"
    transport = RecordingTransport(json_responder(openai_envelope(text)))
    config = pipeline_config()

    letter = LetterPipeline(config, client=openai_client_for(transport, prompt_builder)).run()

    assert letter.metadata.selected_representative_id == 1
    written = sorted(p.name for p in config.output_dir.iterdir())
    assert len(written) == 2
    json_path = next(p for p in config.output_dir.iterdir() if p.suffix == ".json")
    payload = json.loads(json_path.read_text(encoding="utf-8"))
    assert payload["selected_representative"]["name"] == "Jane Doe"
    assert payload["content"] == letter.content
    md_path = json_path.with_suffix(".md")
    assert "Dear Jane Doe" in md_path.read_text(encoding="utf-8")
    assert "jane-doe" in json_path.name


def test_pipeline_dry_run_sends_nothing(pipeline_config, prompt_builder, capsys):
    transport = RecordingTransport(json_responder(openai_envelope("unused")))
    config = pipeline_config(dry_run=True)

    result = LetterPipeline(config, client=openai_client_for(transport, prompt_builder)).run()

    assert result is None
    assert transport.requests == []
    out = capsys.readouterr().out
    assert "SELECTED_REPRESENTATIVE_ID: <integer>" in out
    assert "est cost $0.05" in out
    assert not config.output_dir.exists()


def test_pipeline_state_fallback(pipeline_config, prompt_builder):
    text = "SELECTED_REPRESENTATIVE_ID: 7\n\nDear Pat Lee,\nThanks."
    transport = RecordingTransport(json_responder(openai_envelope(text)))
    config = pipeline_config(user_zip_code="10001", state_fallback="NY")

    letter = LetterPipeline(config, client=openai_client_for(transport, prompt_builder)).run()

    assert letter.selected_representative.state == "NY"


def test_pipeline_without_candidates_fails(pipeline_config, prompt_builder):
    transport = RecordingTransport(json_responder(openai_envelope("unused")))
    with pytest.raises(ConfigurationError, match="no representatives"):
        LetterPipeline(pipeline_config(user_zip_code="10001"), client=openai_client_for(transport, prompt_builder)).run()
    assert transport.requests == []


def test_pipeline_rejects_bad_key_before_sending(pipeline_config, prompt_builder):
    transport = RecordingTransport(json_responder(openai_envelope("unused")))
    client = OpenAIClient(
        "not-a-real-key-at-all-xx",
        prompt_builder=prompt_builder,
        http_client=transport.sync_client(),
    )
    with pytest.raises(ConfigurationError, match="invalid OpenAI API key"):
        LetterPipeline(pipeline_config(), client=client).run()
    assert transport.requests == []


def test_pipeline_propagates_parse_errors(pipeline_config, prompt_builder):
    transport = RecordingTransport(json_responder(openai_envelope("Dear Jane Doe, no marker here")))
    config = pipeline_config()
    with pytest.raises(ParseError):
        LetterPipeline(config, client=openai_client_for(transport, prompt_builder)).run()
    assert not config.output_dir.exists()


def test_pipeline_requires_constituent(pipeline_config, prompt_builder):
    transport = RecordingTransport(json_responder(openai_envelope("unused")))
    with pytest.raises(ConfigurationError, match="user name"):
        LetterPipeline(pipeline_config(user_name=""), client=openai_client_for(transport, prompt_builder)).run()


def test_pipeline_builds_client_from_config(pipeline_config):
    pipeline = LetterPipeline(pipeline_config(provider="anthropic", api_key=ANTHROPIC_KEY))
    assert isinstance(pipeline.client, AnthropicClient)


# =============================================================================
# CONFIGURATION AND CLI
# =============================================================================

ENV_VARS = [
    "AI_PROVIDER",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_MODEL",
    "USER_NAME",
    "USER_ZIP_CODE",
    "LETTER_TONE",
    "LETTER_MAX_LENGTH",
    "REPRESENTATIVES_FILE",
    "LETTER_OUTPUT_DIR",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        # setenv first so teardown also removes values load_dotenv wrote
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


def test_settings_defaults(clean_env, tmp_path):
    settings = load_settings(tmp_path / "absent.env")
    assert settings.provider == "openai"
    assert settings.tone is Tone.PROFESSIONAL
    assert settings.max_length == 500


def test_settings_from_env_file(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "AI_PROVIDER=anthropic\nANTHROPIC_API_KEY=sk-ant-xyz\nLETTER_TONE=passionate\nLETTER_MAX_LENGTH=800\n",
        encoding="utf-8",
    )
    settings = load_settings(env_file)
    assert settings.provider == "anthropic"
    assert settings.api_key_for("anthropic") == "sk-ant-xyz"
    assert settings.model_for("anthropic") == ""
    assert settings.tone is Tone.PASSIONATE
    assert settings.max_length == 800


@pytest.mark.parametrize("raw", ["lots", "-3", "0"])
def test_settings_bad_max_length_falls_back(clean_env, tmp_path, raw):
    clean_env.setenv("LETTER_MAX_LENGTH", raw)
    assert load_settings(tmp_path / "absent.env").max_length == 500


def test_settings_bad_tone(clean_env, tmp_path):
    clean_env.setenv("LETTER_TONE", "sarcastic")
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "absent.env")


def test_cli_dry_run(clean_env, tmp_path, directory_file, capsys):
    clean_env.setenv("OPENAI_API_KEY", OPENAI_KEY)
    clean_env.setenv("USER_NAME", "Alex Rivera")
    clean_env.setenv("USER_ZIP_CODE", "94110")

    code = write_letter.main(
        [
            "Public transit funding",
            "--concern", "Bus routes are being cut",
            "--action", "Vote for the transit bill",
            "--env-file", str(tmp_path / "absent.env"),
            "--representatives", str(directory_file),
            "--output-dir", str(tmp_path / "out"),
            "--dry-run",
        ]
    )

    assert code == 0
    assert "dry run" in capsys.readouterr().out


def test_cli_reports_configuration_errors(clean_env, tmp_path, directory_file, capsys):
    code = write_letter.main(
        [
            "Public transit funding",
            "--concern", "Bus routes are being cut",
            "--action", "Vote for the transit bill",
            "--env-file", str(tmp_path / "absent.env"),
            "--representatives", str(directory_file),
        ]
    )

    assert code == 1
    assert "ConfigurationError" in capsys.readouterr().err


@pytest.mark.parametrize("raw", ["0", "-20", "long"])
def test_cli_rejects_non_positive_max_length(clean_env, tmp_path, directory_file, capsys, raw):
    clean_env.setenv("OPENAI_API_KEY", OPENAI_KEY)
    with pytest.raises(SystemExit) as exc_info:
        write_letter.main(
            [
                "Public transit funding",
                "--concern", "Bus routes are being cut",
                "--action", "Vote for the transit bill",
                "--env-file", str(tmp_path / "absent.env"),
                "--representatives", str(directory_file),
                "--max-length", raw,
            ]
        )
    assert exc_info.value.code == 2
    assert "positive integer" in capsys.readouterr().err


def test_cli_uses_requested_provider_and_model(clean_env, tmp_path, directory_file, capsys):
    clean_env.setenv("ANTHROPIC_API_KEY", ANTHROPIC_KEY)
    clean_env.setenv("USER_NAME", "Alex Rivera")
    clean_env.setenv("USER_ZIP_CODE", "94110")

    code = write_letter.main(
        [
            "Public transit funding",
            "--concern", "Bus routes are being cut",
            "--action", "Vote for the transit bill",
            "--env-file", str(tmp_path / "absent.env"),
            "--representatives", str(directory_file),
            "--provider", "anthropic",
            "--model", "claude-3-haiku-20240307",
            "--max-length", "250",
            "--dry-run",
        ]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert "[letter] anthropic:" in out
    assert "est cost $0.02" in out
    assert "250 words" in out
