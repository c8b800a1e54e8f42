RISK_PATTERNS = {
    "zh_TW": [
        "減肥藥",
        "瘦身藥",
        "減肥針",
        "節食藥",
        "斷食30天",
        "不吃東西",
        "完全不吃",
        "絕食",
        "每天只吃",
        "一天一餐",
        "超低熱量",
        "自殺",
        "厭食症",
        "暴食症",
        "催吐",
        "減重手術",
        "抽脂",
        "胃繞道",
    ],
    "zh_CN": [
        "减肥药",
        "瘦身药",
        "减肥针",
        "节食药",
        "断食30天",
        "不吃东西",
        "完全不吃",
        "绝食",
        "每天只吃",
        "一天一餐",
        "超低热量",
        "自杀",
        "厌食症",
        "暴食症",
        "催吐",
        "减重手术",
        "抽脂",
        "胃绕道",
    ],
    "en": [
        "diet pills",
        "weight loss drugs",
        "appetite suppressant",
        "fat burner pills",
        "fasting 30 days",
        "not eating",
        "starving",
        "extreme diet",
        "eating only",
        "one meal a day",
        "very low calorie",
        "suicide",
        "anorexia",
        "bulimia",
        "purging",
        "weight loss surgery",
        "liposuction",
        "gastric bypass",
    ],
}

# Characters that only appear in simplified script; used to pick the
# simplified keyword list when the declared language is traditional.
SIMPLIFIED_MARKERS = ["减", "药", "断", "绝", "杀", "厌", "术"]


def _risk_language(user_input: str, language: str) -> str:
    if language == "zh_TW" and any(char in user_input for char in SIMPLIFIED_MARKERS):
        return "zh_CN"
    if language in RISK_PATTERNS:
        return language
    return "zh_TW"


def detect_risk_flags(user_input: str, language: str = "zh_TW") -> list[str]:
    lowered = user_input.lower()
    patterns = RISK_PATTERNS[_risk_language(user_input, language)]
    if any(pattern.lower() in lowered for pattern in patterns):
        return ["risky_health_topic"]
    return []


def risk_handling_instructions(response_language: str) -> str:
    return "\n".join(
        [
            "Emergency safety handling instructions:",
            "The user's message touches a potentially risky topic (extreme dieting, medication, surgery or mental health).",
            f"Respond in {response_language} and:",
            "1. Express professional concern in a warm but firm tone.",
            "2. Stay in the dietitian role; never state you are an AI or language model.",
            "3. Briefly explain the health risks of the practice mentioned.",
            "4. Strongly recommend consulting a physician or qualified medical professional.",
            "5. Mention healthy, sustainable alternatives.",
            "6. If mental health is involved, recommend professional mental health support.",
            "Never provide extreme diet advice, recommend drugs or supplements, or downplay the risk.",
        ]
    )
