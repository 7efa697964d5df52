import pytest

from newslookout.errors import ConfigError
from newslookout.pipeline.context import DATA_PROC_CLASSIFY_INDUSTRY, DATA_PROC_SUMMARIZE
from newslookout.stages import llm
from newslookout.stages.llm import (
    ChatGPTBackend,
    GeminiBackend,
    LLMOptions,
    OllamaBackend,
    OllamaProcessor,
    Summarize,
    build_llm_prompt,
)


class FakeBackend:
    def __init__(self):
        self.calls = []

    def generate(self, system_context, user_context, text):
        self.calls.append((user_context, text))
        return f"generated output number {len(self.calls)} for the text"


def test_prompt_templates():
    llama = build_llm_prompt("llama3.1", "SYS", "USER", "TEXT")
    assert llama.startswith("<|begin_of_text|><|start_header_id|>system<|end_header_id|>SYS")
    assert "USER\n\nTEXT<|eot_id|>" in llama
    assert llama.endswith("<|start_header_id|>assistant<|end_header_id|>")
    gemma = build_llm_prompt("gemma2:9b", "SYS", "USER", "TEXT")
    assert gemma == "<start_of_turn>userUSERTEXT<end_of_turn><start_of_turn>model"
    assert build_llm_prompt("mistral", "SYS", "USER", "TEXT") == "SYS\nUSER\nTEXT"


def test_ollama_payload(app_config):
    backend = OllamaBackend(LLMOptions(model_name="llama3.1", temperature=0.2), app_config)
    payload = backend.payload("SYS", "USER", "TEXT")
    assert payload["model"] == "llama3.1"
    assert payload["stream"] is False
    assert payload["keep_alive"] == "10m"
    assert payload["options"] == {"temperature": 0.2, "num_predict": 8192, "num_ctx": 8192}
    assert "TEXT" in payload["prompt"]
    assert backend.endpoint() == "http://127.0.0.1:11434/api/generate"
    assert backend.parse_response({"response": "ok"}) == "ok"


def test_ollama_base_url_option(app_config):
    backend = OllamaBackend(LLMOptions(ollama_svc_base_url="http://gpu:11434/api/generate"), app_config)
    assert backend.endpoint() == "http://gpu:11434/api/generate"


def test_chatgpt_payload_and_auth(app_config, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    backend = ChatGPTBackend(LLMOptions(model_name="gpt-4o"), app_config)
    assert backend.session.headers["Authorization"] == "Bearer sk-test"
    payload = backend.payload("SYS", "USER", "TEXT")
    assert payload["messages"][0] == {"role": "system", "content": "SYS"}
    assert payload["messages"][1]["content"] == "USER\nTEXT"
    data = {"choices": [{"message": {"content": "answer"}}]}
    assert backend.parse_response(data) == "answer"


def test_gemini_endpoint_and_response(app_config, monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
    backend = GeminiBackend(LLMOptions(), app_config)
    assert backend.endpoint().endswith("gemini-1.5-flash:generateContent?key=g-key")
    payload = backend.payload("SYS", "USER", "TEXT")
    assert payload["contents"][0]["parts"][0]["text"] == "USER\nTEXT"
    data = {"candidates": [{"content": {"parts": [{"text": "summary"}]}}]}
    assert backend.parse_response(data) == "summary"


def test_generate_failure_returns_empty(app_config, monkeypatch):
    backend = OllamaBackend(LLMOptions(), app_config)
    monkeypatch.setattr(llm, "http_post_json", lambda *a, **kw: None)
    assert backend.generate("SYS", "USER", "TEXT") == ""
    monkeypatch.setattr(llm, "http_post_json", lambda *a, **kw: {"unexpected": 1})
    assert backend.generate("SYS", "USER", "TEXT") == ""
    monkeypatch.setattr(llm, "http_post_json", lambda *a, **kw: {"response": "fine"})
    assert backend.generate("SYS", "USER", "TEXT") == "fine"


def test_parts_and_document_summaries(app_config, make_doc):
    fake = FakeBackend()
    proc = OllamaProcessor({}, app_config, backend=fake)
    doc = make_doc(text_parts=[
        {"id": 1, "text": "first part", "insights": []},
        {"id": 2, "text": "second part", "insights": []},
    ])
    proc.process(doc)
    for part in doc.text_parts:
        assert part["summary"].startswith("generated output")
        assert part["insights"].startswith("generated output")
    assert doc.generated_content["exec_summary"]
    assert doc.generated_content["actions_summary"]
    # 2 parts x (summary + insights) + 2 document level calls
    assert len(fake.calls) == 6


def test_existing_outputs_kept_without_overwrite(app_config, make_doc):
    fake = FakeBackend()
    proc = OllamaProcessor({}, app_config, backend=fake)
    existing = "an existing summary that is long enough to keep"
    doc = make_doc(
        text_parts=[{"id": 1, "text": "t", "summary": existing, "insights": existing}],
        generated_content={"exec_summary": "kept", "actions_summary": "kept"},
    )
    proc.process(doc)
    assert fake.calls == []
    assert doc.text_parts[0]["summary"] == existing
    assert doc.generated_content["exec_summary"] == "kept"


def test_overwrite_regenerates(app_config, make_doc):
    fake = FakeBackend()
    proc = OllamaProcessor({"overwrite": True}, app_config, backend=fake)
    existing = "an existing summary that is long enough to keep"
    doc = make_doc(text_parts=[{"id": 1, "text": "t", "summary": existing, "insights": existing}])
    proc.process(doc)
    assert doc.text_parts[0]["summary"] != existing


def test_short_previous_output_is_regenerated(app_config, make_doc):
    fake = FakeBackend()
    proc = OllamaProcessor({}, app_config, backend=fake)
    doc = make_doc(text_parts=[{"id": 1, "text": "t", "summary": "too short", "insights": []}])
    proc.process(doc)
    assert doc.text_parts[0]["summary"].startswith("generated output")


def test_flag_gate(app_config, make_doc):
    proc = OllamaProcessor({}, app_config, backend=FakeBackend())
    assert proc.applies_to(make_doc(data_proc_flags=0))
    assert proc.applies_to(make_doc(data_proc_flags=DATA_PROC_SUMMARIZE))
    assert not proc.applies_to(make_doc(data_proc_flags=DATA_PROC_CLASSIFY_INDUSTRY))


def test_save_intermediate(app_config, make_doc, tmp_path):
    proc = OllamaProcessor({"save_intermediate": True}, app_config, backend=FakeBackend())
    doc = make_doc(text_parts=[{"id": 1, "text": "t", "insights": []}])
    proc.process(doc)
    saved = list(tmp_path.glob("mod_test_news_*.json"))
    assert len(saved) == 1


def test_summarize_short_text_in_one_call(app_config, make_doc):
    fake = FakeBackend()
    proc = Summarize({"llm_service": "chatgpt"}, app_config, backend=fake)
    doc = make_doc(text="a short text that fits the context window")
    proc.process(doc)
    assert len(fake.calls) == 1
    assert doc.generated_content["exec_summary"].startswith("generated output")


def test_summarize_long_text_uses_parts(app_config, make_doc):
    fake = FakeBackend()
    proc = Summarize({"num_context": 10}, app_config, backend=fake)
    doc = make_doc(
        text="word " * 50,
        text_parts=[{"id": 1, "text": "word " * 25, "insights": []}, {"id": 2, "text": "word " * 25, "insights": []}],
    )
    proc.process(doc)
    assert "summary" in doc.text_parts[0]
    assert len(fake.calls) == 6


def test_summarize_backend_selection(app_config):
    assert isinstance(Summarize({"llm_service": "gemini"}, app_config).backend, GeminiBackend)
    assert isinstance(Summarize({}, app_config).backend, OllamaBackend)
    with pytest.raises(ConfigError):
        Summarize({"llm_service": "unknown"}, app_config)
