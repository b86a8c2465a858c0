import os

import pandas as pd
import requests
import streamlit as st

API = os.getenv("API_URL", "http://127.0.0.1:8000")

st.set_page_config(page_title="NS Node Planner", layout="wide")
st.title("Society-as-a-Service Planner")


def api_get(path, params=None, timeout=60):
    url = f"{API}{path}"
    r = requests.get(url, params=params or {}, timeout=timeout)
    r.raise_for_status()
    return r


def api_post(path, json_data=None, params=None, timeout=60):
    url = f"{API}{path}"
    r = requests.post(url, json=json_data, params=params or {}, timeout=timeout)
    r.raise_for_status()
    return r


def show_error(e: Exception, context: str = ""):
    msg = f"{context}\n{str(e)}".strip()
    st.error(msg)
    with st.expander("Details"):
        st.exception(e)


def render_question(q):
    label = q["label"] + (" *" if q.get("required") else "")
    key = f"q_{q['id']}"
    qtype = q.get("type")
    if qtype == "number":
        return st.number_input(label, min_value=q.get("min"), value=None, placeholder=q.get("placeholder"), help=q.get("help_text"), key=key)
    if qtype == "textarea":
        return st.text_area(label, placeholder=q.get("placeholder", ""), help=q.get("help_text"), key=key)
    if qtype in ("select", "radio"):
        options = q.get("options", [])
        values = [o["value"] for o in options]
        labels = {o["value"]: o["label"] for o in options}
        if qtype == "select":
            return st.selectbox(label, [None] + values, format_func=lambda v: "Select..." if v is None else labels[v], key=key)
        return st.radio(label, values, format_func=lambda v: labels[v], key=key)
    return st.text_input(label, placeholder=q.get("placeholder", ""), help=q.get("help_text"), key=key)


def cost_rows(items):
    rows = []
    for idx, rec in enumerate(items, 1):
        if not isinstance(rec, dict):
            continue
        rows.append({
            "#": idx,
            "Service": rec.get("serviceName") or rec.get("serviceId") or "Service",
            "Initial Cost": rec.get("estimatedInitialCost"),
            "Monthly Cost": rec.get("estimatedMonthlyCost"),
        })
    return rows


# ---- state ----
if "result" not in st.session_state: st.session_state.result = None
if "pdf_bytes" not in st.session_state: st.session_state.pdf_bytes = None
if "location" not in st.session_state: st.session_state.location = ""

# ---- questionnaire ----
try:
    questions = api_get("/questions", timeout=5).json().get("questions", [])
except Exception as e:
    questions = []
    show_error(e, "Could not load the questionnaire from the backend.")

with st.form("questionnaire"):
    answers = {q["id"]: render_question(q) for q in questions}
    submitted = st.form_submit_button("Get Recommendations", disabled=not questions)

if submitted:
    missing = [q["label"] for q in questions if q.get("required") and answers.get(q["id"]) in (None, "")]
    if missing:
        st.warning("Please fill in: " + ", ".join(missing))
    else:
        try:
            with st.spinner("Searching prices and building recommendations..."):
                st.session_state.result = api_post("/recommendations", json_data={"answers": answers}, timeout=300).json()
            st.session_state.pdf_bytes = None
            st.session_state.location = ", ".join(
                str(answers.get(k)) for k in ("location_city", "location_state", "location_country") if answers.get(k)
            )
            st.success("Recommendations ready")
        except Exception as e:
            show_error(e, "Recommendations error")

# ---- results ----
result = st.session_state.result
if isinstance(result, dict):
    st.divider()
    recs = result.get("recommendations")

    if isinstance(recs, dict) and recs.get("raw"):
        st.warning("The model reply could not be parsed; showing it as-is.")
        st.text(recs.get("text", ""))
    elif isinstance(recs, list) and recs:
        m1, m2, m3 = st.columns(3)
        m1.metric("Total Initial", str(result.get("totalEstimatedInitialCost", "-")))
        m2.metric("Total Monthly", str(result.get("totalEstimatedMonthlyCost", "-")))
        over = result.get("totalEstimatedCostOverBudget")
        m3.metric("Over Budget", "-" if over is None else str(over))
        if result.get("overBudgetReason"):
            st.error(result["overBudgetReason"])
        if result.get("notes"):
            st.info(result["notes"])

        st.dataframe(pd.DataFrame(cost_rows(recs)), use_container_width=True, hide_index=True)

        for idx, rec in enumerate(recs, 1):
            if not isinstance(rec, dict):
                continue
            with st.expander(f"{idx}. {rec.get('serviceName') or rec.get('serviceId') or 'Service'}"):
                steps = rec.get("steps")
                if isinstance(steps, list) and steps:
                    st.markdown("**Steps**")
                    st.markdown("\n".join(f"{n}. {s}" for n, s in enumerate(steps, 1)))
                if rec.get("specificRecommendations"):
                    st.markdown("**Recommendations**")
                    st.write(rec["specificRecommendations"])
                sources = rec.get("sources")
                if isinstance(sources, list) and sources:
                    st.markdown("**Sources**")
                    st.markdown("\n".join(f"{n}. {s}" for n, s in enumerate(sources, 1)))
    else:
        st.info("No recommendations returned.")

    if st.button("Generate PDF"):
        try:
            with st.spinner("Building PDF..."):
                params = {"location": st.session_state.location} if st.session_state.location else None
                st.session_state.pdf_bytes = api_post("/generate-pdf", json_data=result, params=params, timeout=120).content
            st.success("PDF generated")
        except Exception as e:
            show_error(e, "PDF error")

    if st.session_state.pdf_bytes:
        st.download_button("Download PDF", data=st.session_state.pdf_bytes, file_name="recommendations.pdf", mime="application/pdf")

    with st.expander("Raw JSON"):
        st.json(result)
