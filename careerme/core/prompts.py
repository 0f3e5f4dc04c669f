"""
Prompt builders for the self-PR, career summary and resume body, plus the canned
texts served when generation is unavailable.
"""

from typing import List, Optional


def _normalize(text: Optional[str]) -> str:
    return (text or "").strip()


def build_selfpr_prompt(qa, experience_summary: Optional[str] = None) -> str:
    lines: List[str] = [
        "あなたは経験豊富なキャリアアドバイザーです。候補者の情報から日本語の自己PR文を作成してください。",
        "出力要件:",
        "- 文字数は300〜500文字に収めること。",
        "- 3段落構成: 第1段落は要約、第2段落は強みを示す具体的なエピソード、第3段落は志向と希望職種。",
        "- 語調はビジネスで丁寧に。個人名や機密情報、事実に基づかない誇張は禁止。",
        "- 明確な成果や数値が無い場合は文脈から自然に補完し、信頼できる表現に調整すること。",
        "",
        "以下のQ&Aをもとに作成してください:",
        f"Q1 強み・自己PR: {qa.q1}",
        f"Q2 強みを示すエピソード: {qa.q2}",
        f"Q3 仕事で大切にしていること: {qa.q3}",
        f"Q4 希望する役割: {qa.q4}",
    ]

    summary = _normalize(experience_summary)
    if summary:
        lines += ["", "職歴の要約:", summary]

    lines += ["", "これらを踏まえ、指示に沿った自己PR文を出力してください。"]
    return "\n".join(lines)


def _context_lines(role, years, headline_keywords, extra_notes, role_label: str) -> List[str]:
    lines = []
    if role:
        lines.append(f"■{role_label}: {role}")
    if years is not None:
        lines.append(f"■経験年数: 約{years:g}年")
    if headline_keywords:
        lines.append(f"■含めたいキーワード: {', '.join(headline_keywords)}")
    if extra_notes:
        lines.append(f"■補足: {extra_notes}")
    return lines


def build_summary_prompt(locale: str = "ja", role=None, years=None, headline_keywords=None, extra_notes=None) -> str:
    lines = [
        f"You are a writing assistant. Output language: {locale}.",
        "Task: Compose a Japanese professional summary (職務要約).",
        "Target length: 200–400 Japanese characters.",
        "Guidelines:",
        "- Begin with a headline describing role and impact.",
        "- Summarize scope, domains, and strengths in 2–3 sentences.",
        "- Prefer measurable outcomes or concrete achievements.",
        "- Avoid redundant phrases or excessive first-person pronouns.",
        "Context:",
    ]
    lines += _context_lines(role, years, headline_keywords, extra_notes, "ロール")
    return "\n".join(lines)


def build_resume_prompt(locale: str = "ja", role=None, years=None, headline_keywords=None, extra_notes=None) -> str:
    lines = [
        f"You are a writing assistant. Output language: {locale}.",
        "Task: Compose a Japanese resume (履歴書) body text suitable for a standard Japanese job application.",
        "Tone: Polite (です・ます調) and natural.",
        "Target length: 400–800 Japanese characters.",
        "Structure guidelines:",
        "- Start with a brief profile summary that sets the role intention.",
        "- Summarize strengths and notable achievements in 2–3 sentences.",
        "- Outline career overview with responsibilities, domains, and outcomes.",
        "- Close with motivation or values relevant to the target role.",
        "If some fields are missing, make reasonable, generic assumptions without hallucinating specific companies.",
        "Context:",
    ]
    lines += _context_lines(role, years, headline_keywords, extra_notes, "志望ロール")
    return "\n".join(lines)


def selfpr_fallback_text(qa) -> str:
    return "\n".join([
        "【自己PR（バックアップ）】",
        qa.q1,
        qa.q2,
        f"価値観: {qa.q3}",
        f"志向: {qa.q4}",
    ]).strip()


def summary_fallback_text(role=None, years=None, headline_keywords=None) -> str:
    lines = ["【職務要約（バックアップ）】"]
    if role and years is not None:
        lines.append(f"{role}として約{years:g}年の経験があります。")
    elif role:
        lines.append(f"{role}としての経験があります。")
    if headline_keywords:
        lines.append(f"主な領域: {', '.join(headline_keywords)}")
    lines.append("これまでの経験を活かし、組織の成果に貢献します。")
    return "\n".join(lines)


def resume_fallback_text(role=None, years=None, headline_keywords=None) -> str:
    lines = ["【履歴書本文（バックアップ）】"]
    if role:
        lines.append(f"志望ロール: {role}")
    if years is not None:
        lines.append(f"経験年数: 約{years:g}年")
    if headline_keywords:
        lines.append(f"キーワード: {', '.join(headline_keywords)}")
    lines.append("これまでの経験と強みを活かし、貴社の事業に貢献したいと考えております。")
    return "\n".join(lines)
