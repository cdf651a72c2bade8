from __future__ import annotations

import json
from typing import Iterable

TERMINATION_PHRASE = "Thank you, that concludes the interview"

SCREENING_SYSTEM_INSTRUCTION = "Return only valid JSON."
INTERVIEW_SYSTEM_INSTRUCTION = "Be professional and concise."
FEEDBACK_SYSTEM_INSTRUCTION = "JSON only."


def build_policy_system_prompt(policy: str) -> str:
    return (
        "You are an expert HR Assistant for a Tech Company.\n"
        "Company Policy Context:\n"
        f"{policy.strip()}\n"
        "Answer politely and concisely. If unknown, advise contacting HR Admin."
    )


def build_policy_greeting(display_name: str | None = None) -> str:
    name = (display_name or "").strip()
    salutation = f"Hello {name}!" if name else "Hello!"
    return (
        f"{salutation} I'm your HR Policy Assistant. "
        "Ask me about leaves, benefits, or company guidelines."
    )


def build_interview_welcome(role_title: str) -> str:
    return (
        f"Welcome to the interview for the {role_title} position. I am your AI interviewer. "
        "Let's start with a simple question: Tell me about yourself and why you applied for this role."
    )


def transcript_json(turns: Iterable[dict[str, str]]) -> str:
    return json.dumps(list(turns), ensure_ascii=False)


def build_interview_turn_prompt(role_title: str, turns: Iterable[dict[str, str]], target_turns: int) -> str:
    return (
        f"You are an AI Interviewer for a {role_title} position.\n"
        f"Conversation History: {transcript_json(turns)}\n\n"
        "Task:\n"
        "1. Analyze the candidate's last answer.\n"
        f"2. If the interview is short (< {target_turns} turns), ask a relevant follow-up "
        "or new technical/behavioral question.\n"
        f"3. If the interview is long enough ({target_turns} turns), say \"{TERMINATION_PHRASE}\" "
        "and provide a feedback summary.\n\n"
        "Return ONLY the response text."
    )


def build_interview_closing() -> str:
    return f"{TERMINATION_PHRASE}. We have reached the time limit for this session; feedback will follow shortly."


def build_feedback_prompt(turns: Iterable[dict[str, str]]) -> str:
    return (
        f"Based on this interview transcript: {transcript_json(turns)}, "
        'generate a JSON with "score" (0-100), "pros", "cons".'
    )


def build_screening_prompt(job_description: str, resume_text: str) -> str:
    return (
        "Act as an expert Technical Recruiter.\n"
        f"Job Description: {job_description}\n"
        f"Candidate Resume Text: {resume_text}\n\n"
        "Task:\n"
        "1. Analyze the match between the resume and JD.\n"
        "2. Provide a match score (0-100).\n"
        "3. List 3 key strengths.\n"
        "4. List 3 missing skills or gaps.\n"
        "5. Final hiring recommendation (Strong Hire, Hire, Weak Hire, Reject).\n\n"
        "Output strictly in JSON format:\n"
        "{\n"
        '  "score": number,\n'
        '  "strengths": ["string"],\n'
        '  "gaps": ["string"],\n'
        '  "recommendation": "string",\n'
        '  "summary": "string"\n'
        "}"
    )
