"""
Default Sales Call Manifesto

The universal framework used when a team has no custom config: the stages
of a sales call, expected behaviors, key moments and objection rebuttals.
"""

from typing import Optional

from .team_config import CallManifesto, ManifestoObjection, ManifestoStage


DEFAULT_MANIFESTO = CallManifesto(
    stages=[
        ManifestoStage(
            id="stage_intro",
            name="Introduction / Rapport / Framing",
            goal="Show up powerful, take control, frame the call",
            good_behaviors=[
                "High energy, fully present",
                "Limited small talk, get to business quickly",
                "Take control of the conversation early",
                "Frame the call with time awareness",
                "Set clear expectations for the call",
            ],
            bad_behaviors=[
                "Using casual language like 'mate', 'bro', 'buddy', 'man'",
                "Too much small talk before getting to business",
                "Low energy or seeming distracted",
                "Letting the prospect lead the call structure",
            ],
            key_moments=[
                "Opening question: 'In your opinion, what is the biggest challenge you are having in your [AREA] right now?'",
            ],
            order=1,
        ),
        ManifestoStage(
            id="stage_discovery",
            name="Discovery",
            goal="Understand severity, get specifics, create ownership",
            good_behaviors=[
                "Get prospect to explicitly name pain points with specifics and numbers",
                "Ask open-ended questions",
                "Summarize and reframe their info back to them",
                "Dig deeper on emotional responses",
            ],
            bad_behaviors=[
                "Using minimizing words: 'just', 'little bit', 'kind of'",
                "Asking binary yes/no questions",
                "Asking double questions back-to-back",
                "Letting prospect play victim without challenging",
            ],
            key_moments=[
                "Closing discovery: 'Is there anything else that you feel like we haven't discussed that I need to know?'",
            ],
            order=2,
        ),
        ManifestoStage(
            id="stage_transition",
            name="Transition / Summary",
            goal="Summarize where they are and where they want to go, get permission to pitch",
            good_behaviors=[
                "Accurate summary delivered with certainty",
                "Include emotional reasons in the summary",
                "Get verbal confirmation before moving on",
            ],
            bad_behaviors=[
                "Skipping the summary entirely",
                "Not getting confirmation before pitching",
            ],
            key_moments=[
                "Permission to pitch: 'If you'd like I can walk you through the process of exactly how...'",
            ],
            order=3,
        ),
        ManifestoStage(
            id="stage_pitch",
            name="Pitch",
            goal="Present the solution naturally and check for understanding",
            good_behaviors=[
                "Customize to the prospect's specific situation",
                "Check-ins throughout: 'Everything make sense?'",
                "Temperature check before close",
            ],
            bad_behaviors=[
                "Rushing through the pitch",
                "No check-ins during presentation",
                "Reading without conviction",
            ],
            key_moments=[
                "Temperature check: 'In terms of the process, how do you feel?'",
                "Open questions: 'What questions do you have?' (not 'any questions')",
            ],
            order=4,
        ),
        ManifestoStage(
            id="stage_close",
            name="Close / Objections",
            goal="Handle objections and close the deal",
            good_behaviors=[
                "Ask for the sale directly",
                "Handle objections with empathy then redirect",
                "Stay confident through objections",
            ],
            bad_behaviors=[
                "Not asking for the sale",
                "Accepting objections at face value",
                "Dropping price too quickly",
            ],
            key_moments=[
                "Closing question: 'Based on everything we discussed, are you ready to get started?'",
            ],
            order=5,
        ),
    ],
    objections=[
        ManifestoObjection(
            id="obj_spouse",
            name="Spouse/Partner",
            rebuttals=[
                "I completely understand. When you spoke with them before this call, what did they say about you solving this problem?",
                "That makes sense. If they were here right now, what do you think their biggest concern would be?",
            ],
        ),
        ManifestoObjection(
            id="obj_price",
            name="Price/Money",
            rebuttals=[
                "I understand price is a consideration. If the investment wasn't a factor, would you want to move forward?",
                "Compared to the cost of staying where you are, how does this investment look?",
            ],
        ),
        ManifestoObjection(
            id="obj_timing",
            name="Timing",
            rebuttals=[
                "What would need to happen for the timing to be right?",
                "What's the cost of waiting another 3-6 months on this?",
            ],
        ),
        ManifestoObjection(
            id="obj_think",
            name="Need to think about it",
            rebuttals=[
                "Absolutely, this is a big decision. What specifically do you need to think about?",
                "On a scale of 1-10, where are you at in terms of moving forward?",
            ],
        ),
    ],
)

# Share of an assumed call spent in each default stage (sums to 100)
DEFAULT_STAGE_DURATION_PERCENT = {
    "stage_intro": 10,
    "stage_discovery": 35,
    "stage_transition": 10,
    "stage_pitch": 25,
    "stage_close": 20,
}


def get_manifesto_for_call(custom: Optional[CallManifesto] = None) -> CallManifesto:
    """Custom manifesto if it defines stages, otherwise the default"""
    if custom is not None and custom.stages:
        return custom
    return DEFAULT_MANIFESTO
