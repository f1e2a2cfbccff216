import pytest

from lettersmith.core.errors import TemplateError
from lettersmith.core.models import RepresentativeOption
from lettersmith.core.prompt import PromptBuilder, load_prompt_template


def test_prompt_lists_every_candidate(prompt_builder, generation_request):
    prompt = prompt_builder.build(generation_request)

    for rep in generation_request.available_representatives:
        assert f"ID: {rep.id}" in prompt
        assert f"Name: {rep.name}" in prompt
        assert f"Title: {rep.title}" in prompt
    assert "Party: Democratic" in prompt
    assert "District: 12" in prompt
    assert "Party: Not specified" in prompt


def test_prompt_carries_advocacy_and_constituent_fields(prompt_builder, generation_request):
    prompt = prompt_builder.build(generation_request)

    assert generation_request.main_issue in prompt
    assert generation_request.specific_concern in prompt
    assert generation_request.requested_action in prompt
    assert "Alex Rivera" in prompt
    assert "94110" in prompt
    assert "Tone: professional" in prompt
    assert "300 words" in prompt


def test_prompt_demands_marker_line(prompt_builder, generation_request):
    prompt = prompt_builder.build(generation_request)
    assert "SELECTED_REPRESENTATIVE_ID: <integer>" in prompt


def test_prompt_is_deterministic(prompt_builder, make_request):
    assert prompt_builder.build(make_request()) == prompt_builder.build(make_request())


def test_candidate_order_is_preserved(prompt_builder, make_request):
    reps = (
        RepresentativeOption(id=9, name="Zed Last", title="Mayor", state="CA"),
        RepresentativeOption(id=3, name="Amy First", title="Senator", state="CA"),
    )
    prompt = prompt_builder.build(make_request(available_representatives=reps))
    assert prompt.index("Zed Last") < prompt.index("Amy First")


def test_braces_in_user_text_are_not_reformatted(prompt_builder, make_request):
    prompt = prompt_builder.build(make_request(specific_concern="Budget line {transit} was cut"))
    assert "Budget line {transit} was cut" in prompt


def test_system_message_mentions_target_length(prompt_builder, make_request):
    assert "750-word" in prompt_builder.system_message(make_request(max_length=750))


def test_missing_template_raises_template_error(tmp_path):
    with pytest.raises(TemplateError):
        load_prompt_template(tmp_path / "missing.txt")


def test_template_missing_placeholders_is_rejected(tmp_path):
    path = tmp_path / "prompt.txt"
    path.write_text("Write a letter about {main_issue}.", encoding="utf-8")
    with pytest.raises(TemplateError) as exc_info:
        PromptBuilder.from_path(path)
    assert "representatives" in str(exc_info.value)


def test_template_with_unknown_placeholder_is_rejected(tmp_path, prompt_builder):
    path = tmp_path / "prompt.txt"
    path.write_text(prompt_builder.template + "\n{favorite_color}\n", encoding="utf-8")
    with pytest.raises(TemplateError):
        load_prompt_template(path)


def test_template_with_unnamed_placeholder_is_rejected(tmp_path, prompt_builder):
    path = tmp_path / "prompt.txt"
    path.write_text(prompt_builder.template + "\n{}\n", encoding="utf-8")
    with pytest.raises(TemplateError, match="unnamed"):
        load_prompt_template(path)


def test_malformed_template_is_rejected(tmp_path):
    path = tmp_path / "prompt.txt"
    path.write_text("unclosed {representatives", encoding="utf-8")
    with pytest.raises(TemplateError):
        load_prompt_template(path)
