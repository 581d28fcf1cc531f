import time
import requests
import streamlit as st
from typing import Optional, Dict, Any

try:
    API_URL = st.secrets["API_URL"]
except Exception:
    API_URL = "http://localhost:8001"

st.set_page_config(page_title="Seedbank", layout="wide")
st.title("🌱 Seedbank")

API_URL = API_URL.rstrip("/")
SEEDING = "/api/v1/seeding"
REGISTRY = "/api/v1/registry"


def api_get(path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    resp = requests.get(f"{API_URL}{path}", params=params, timeout=20)
    resp.raise_for_status()
    return resp.json()


def show_diagnostic(data: Dict[str, Any]) -> None:
    st.error(data.get("message") or data.get("detail") or "Request failed")
    report = data.get("user_friendly_message")
    if report:
        st.code(report, language="text")


def post_seed(path: str, **kwargs) -> None:
    start = time.time()
    try:
        resp = requests.post(f"{API_URL}{path}", timeout=60, **kwargs)
    except requests.RequestException as e:
        st.error(f"API unreachable: {e}")
        return
    data = resp.json()
    if resp.status_code != 200:
        show_diagnostic(data)
        return
    st.success(data.get("message", "Done"))
    st.caption(f"Completed in {time.time() - start:.2f} seconds")
    if data.get("summary"):
        st.table([{"type": k, "objects": v} for k, v in sorted(data["summary"].items())])
    with st.expander("Raw response"):
        st.json(data)


tabs = st.tabs([
    "Suites",
    "Raw YAML",
    "Registry",
])

# ----------------------------
# Tab 0: Suites
# ----------------------------
with tabs[0]:
    st.header("Suites")

    try:
        status = api_get(f"{SEEDING}/status")
        a, b, c = st.columns(3)
        a.metric("Environment", status.get("env", "?"))
        b.metric("Registry entries", status.get("registry_entries", 0))
        c.metric("Seeding", "✅ Allowed" if status.get("ready_for_use") else "⛔ Disabled")
    except Exception as e:
        st.error(f"Failed to fetch status: {e}")
        st.stop()

    try:
        files = [f["path"] for f in api_get(f"{SEEDING}/files").get("files", [])]
    except Exception as e:
        st.error(f"Failed to list suite files: {e}")
        files = []

    if not files:
        st.info("No YAML files found in the suites directory.")
    else:
        selected = st.multiselect("Files", files, key="suite_files")
        if selected:
            with st.expander("Preview"):
                for path in selected:
                    content = api_get(f"{SEEDING}/files/content", params={"path": path}).get("content", "")
                    st.caption(path)
                    st.code(content, language="yaml")

        col1, col2 = st.columns(2)
        with col1:
            if st.button("Validate (read-only)", disabled=not selected, key="suite_validate"):
                post_seed(f"{SEEDING}/validate", json={"files": selected})
        with col2:
            if st.button("Load", type="primary", disabled=not selected, key="suite_load"):
                post_seed(f"{SEEDING}/load", json={"files": selected})

# ----------------------------
# Tab 1: Raw YAML
# ----------------------------
with tabs[1]:
    st.header("Raw YAML")
    text = st.text_area("Seed document", height=320, key="raw_yaml", placeholder="data:\n  accounts:\n    - factory: account\n      attributes:\n        name: Example\n")

    col1, col2 = st.columns(2)
    headers = {"Content-Type": "application/x-yaml"}
    with col1:
        if st.button("Validate (read-only)", disabled=not text.strip(), key="raw_validate"):
            post_seed(f"{SEEDING}/validate/raw", data=text.encode("utf-8"), headers=headers)
    with col2:
        if st.button("Load", type="primary", disabled=not text.strip(), key="raw_load"):
            post_seed(f"{SEEDING}/load/raw", data=text.encode("utf-8"), headers=headers)

# ----------------------------
# Tab 2: Registry
# ----------------------------
with tabs[2]:
    st.header("Registry")

    try:
        stats = api_get(f"{REGISTRY}/stats")
    except Exception as e:
        st.error(f"Failed to fetch registry stats: {e}")
        st.stop()

    st.metric("Total entries", stats.get("total_entries", 0))
    model_names = ["all"] + [name for name, _ in stats.get("model_counts", [])]

    col1, col2, col3 = st.columns([2, 3, 1])
    with col1:
        model_filter = st.selectbox("Object class", model_names, key="reg_model")
    with col2:
        search = st.text_input("Search keys", key="reg_search")
    with col3:
        per_page = st.number_input("Per page", min_value=1, max_value=1000, value=50, key="reg_per_page")

    page = api_get(f"{REGISTRY}/", params={"model_filter": model_filter, "search": search or None, "per_page": per_page})
    rows = page.get("entries", [])
    st.caption(f"{page.get('filtered_count', 0)} of {page.get('total_count', 0)} entries")
    if rows:
        st.dataframe(rows, use_container_width=True)

    if any(not r.get("object_exists") for r in rows):
        st.warning("Some entries reference deleted objects.")
    if st.button("Clean orphaned entries", key="reg_clean"):
        resp = requests.delete(f"{API_URL}{REGISTRY}/orphaned", timeout=20)
        if resp.status_code == 200:
            st.success(resp.json().get("message"))
            st.rerun()
        else:
            show_diagnostic(resp.json())
