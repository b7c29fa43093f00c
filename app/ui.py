# Run from project root: streamlit run app/ui.py
# UI talks to the backend API (GET /api/agent/skills, POST /api/agent/skills/<name>, POST /api/agent/prompt).
# Every chat message is a new gate session on the server; delete requests go straight to purge_documents.

import json
import os
import sys
from pathlib import Path

# Ensure project root is on path (Streamlit may run with cwd != project root)
_root_from_file = Path(__file__).resolve().parent.parent
for _root in (_root_from_file, Path.cwd()):
    _root = str(_root)
    if _root not in sys.path:
        sys.path.insert(0, _root)

import requests
import streamlit as st

from app.agent.intents import is_delete_intent

API_BASE = os.environ.get("API_BASE", "http://localhost:5000")


def _show_result(result) -> str:
    """Text form of a skill result (string or structured)."""
    if isinstance(result, dict):
        return result.get("message") or json.dumps(result, indent=2, default=str)
    return str(result)


st.title("Book Assistant")

try:
    r = requests.get(f"{API_BASE}/health", timeout=5)
    st.caption("Backend is up." if r.ok else f"Backend returned {r.status_code}.")
except requests.RequestException:
    st.caption("Backend not reachable. Start the API first (python -m app.main api).")

try:
    r = requests.get(f"{API_BASE}/api/agent/skills", timeout=10)
    skills = (r.json().get("data") or {}).get("skills") or [] if r.ok else []
except requests.RequestException:
    skills = []

# Run one skill directly
with st.expander("Run a skill"):
    if not skills:
        st.caption("No skills available.")
    else:
        names = [s["name"] for s in skills]
        selected = st.selectbox("Skill", names, key="skill_name")
        skill = next(s for s in skills if s["name"] == selected)
        st.caption(skill.get("description", ""))
        params = {}
        for input_name, meta in (skill.get("inputs") or {}).items():
            label = f"{input_name}{' *' if meta.get('required') else ''}"
            value = st.text_input(label, help=meta.get("description", ""), key=f"input_{selected}_{input_name}")
            if value.strip():
                params[input_name] = value.strip()
        if st.button("Run", key="run_skill"):
            try:
                r = requests.post(f"{API_BASE}/api/agent/skills/{selected}", json=params, timeout=180)
                body = r.json()
                if r.ok:
                    st.success(_show_result(body["data"]["result"]))
                else:
                    st.error(f"{r.status_code}: {body.get('error', r.text[:200])}")
            except requests.RequestException as e:
                st.error(f"Request failed: {e}")

st.divider()
st.subheader("Chat")

if "messages" not in st.session_state:
    st.session_state.messages = []
if st.button("New chat", key="new_chat"):
    st.session_state.messages = []
    st.rerun()

for msg in st.session_state.messages:
    with st.chat_message(msg["role"]):
        st.markdown(msg["content"])

if st.session_state.get("pending_prompt"):
    prompt = st.session_state.pending_prompt
    with st.chat_message("assistant"):
        placeholder = st.empty()
        placeholder.caption("Thinking...")
        try:
            if is_delete_intent(prompt):
                r = requests.post(
                    f"{API_BASE}/api/agent/skills/purge_documents", json={"confirmation": prompt}, timeout=180
                )
                body = r.json()
                answer = _show_result(body["data"]["result"]) if r.ok else body.get("error", r.text[:200])
            else:
                r = requests.post(f"{API_BASE}/api/agent/prompt", json={"message": prompt}, timeout=180)
                body = r.json()
                if r.ok:
                    answer = body["data"]["response"]
                    used = body["data"].get("skillsUsed") or []
                    if used:
                        st.caption(f"Skills used: {', '.join(used)}")
                else:
                    answer = f"Error: {r.status_code}: {body.get('error', r.text[:200])}"
        except (requests.RequestException, ValueError) as e:
            answer = f"Connection failed: {e}"
        placeholder.markdown(answer)
        st.session_state.messages.append({"role": "assistant", "content": answer})
    del st.session_state["pending_prompt"]
    st.rerun()

if prompt := st.chat_input("Index a PDF, ask about your documents, or look up a book"):
    st.session_state.messages.append({"role": "user", "content": prompt})
    st.session_state.pending_prompt = prompt
    st.rerun()
