"""Prompt templates for advocate matching.

The selection line grammar is parsed back by features/advocates/parsing.py;
keep the two in sync.
"""

from typing import Iterable

from intellect.models.advocate import Advocate


def format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def render_advocate(advocate: Advocate, position: int) -> str:
    return (
        f"Advocate {position}:\n"
        f"Name: {advocate.name}\n"
        f"Description: {advocate.short_description}\n"
        f"Skills: {advocate.skills}\n"
        f"Experience: {format_number(advocate.experience)} years\n"
        f"Gender: {advocate.gender}\n"
        f"Rating: {format_number(advocate.rating)}/10\n"
        f"Country: {advocate.country}\n"
        f"Email: {advocate.email}\n"
    )


def render_advocates(items: Iterable[Advocate]) -> str:
    return "\n".join(render_advocate(advocate, i) for i, advocate in enumerate(items, start=1))


MATCH_PROMPT = """
Task: Based on the intellectual property case description and available IP advocates from {country}, select EXACTLY 1 BEST-SUITED advocate who is the CLOSEST MATCH and most qualified to handle this specific case.

Critical Selection Criteria (in order of priority):
1. **Expertise Match**: The advocate's skills and specialization must directly align with the specific type of IP case (trademark, copyright, patent, brand theft, design rights, etc.)
2. **Experience Relevance**: Higher experience in the relevant field should be prioritized
3. **Rating**: Higher rated advocates indicate proven track record
4. **Case-Specific Fit**: Consider any unique aspects of the case (e.g., e-commerce, pharmaceuticals, software, etc.)

Important Considerations:
- ALL advocates listed are from {country} as requested by the user.
- Analyze the case description carefully to identify the PRIMARY type of IP issue (trademark, copyright, patent, design, brand protection, etc.)
- Match the advocate's skills PRECISELY to the case requirements
- Consider the advocate's rating and experience level as secondary factors
- Select the ONE advocate who is the ABSOLUTE BEST MATCH - not just any qualified advocate

Rules:
- Do NOT mention advocates not in the list.
- Select EXACTLY 1 advocate - THE SINGLE BEST MATCH ONLY.
- Provide a COMPREHENSIVE reason (3-4 sentences) explaining:
  * Why this advocate is the BEST and CLOSEST match for this specific case
  * How their specific skills align with the case requirements
  * Why they are better suited than other available advocates
  * What makes them uniquely qualified for this particular IP issue
- Provide a confidence score (0-100) indicating how well this advocate matches the case requirements.
- Format the response EXACTLY as:

Selected Advocate:
1. <Advocate Name> - <Comprehensive reason explaining why this advocate is the absolute best match, their specific expertise alignment, and why they stand out for this case> - Confidence: <score>

IP Case Description:
{case_description}

Available IP Advocates from {country}:
{advocates}
"""


def build_match_prompt(case_description: str, advocates_text: str, country: str) -> str:
    return MATCH_PROMPT.format(
        country=country,
        case_description=case_description.strip(),
        advocates=advocates_text,
    )
