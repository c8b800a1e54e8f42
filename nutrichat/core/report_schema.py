from typing import Any

HEALTH_REPORT_FUNCTION_NAME = "generate_visual_health_report"

STATUS_ENUM = [
    "EXCELLENT",
    "GOOD",
    "OK",
    "LOW",
    "HIGH",
    "SEVERELY_LOW",
    "SEVERELY_HIGH",
    "NEEDS_IMPROVEMENT",
    "GOOD_BUT_ATTENTION_NEEDED",
]
INSIGHT_TYPE_ENUM = ["highlight", "reminder"]
MACRO_NAME_ENUM = ["protein", "carbs", "fats"]


def _obj(description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {"type": "object", "description": description, "properties": properties, "required": required}


def _num(description: str) -> dict[str, Any]:
    return {"type": "number", "description": description}


def _int(description: str) -> dict[str, Any]:
    return {"type": "integer", "description": description}


def _str(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


def _food_items(description: str, notes_key: str, notes_description: str) -> dict[str, Any]:
    return {
        "type": "array",
        "description": description,
        "maxItems": 3,
        "items": _obj(
            "A food from the user's diet records.",
            {
                "name": _str("Food name."),
                notes_key: {
                    "type": "array",
                    "description": notes_description,
                    "items": {"type": "string"},
                    "minItems": 2,
                    "maxItems": 3,
                },
                "image": _str("Image URL from the diet record, or null when there is none."),
            },
            ["name", notes_key, "image"],
        ),
    }


HEALTH_REPORT_SCHEMA: dict[str, Any] = _obj(
    "Structured data used to render the visual health report.",
    {
        "reportSummary": _obj(
            "Summary card at the top of the report.",
            {"text": _str("2-3 sentences naming one strength and the most important improvement. No greetings.")},
            ["text"],
        ),
        "weightTrend": _obj(
            "Weight trend line chart.",
            {
                "summaryText": _str("Short analysis of the weight change over the last month."),
                "totalChange": _num("Use insights.totalChange."),
                "weeklyAverageChange": _num("Use insights.weeklyAverageChange."),
                "unit": _str("Weight unit from basicInfo.weightUnit, e.g. 'kg' or 'lbs'."),
                "chartData": {
                    "type": "array",
                    "description": "Data points for the chart; filter out obvious input errors.",
                    "items": _obj(
                        "One weigh-in.",
                        {"date": _str("Date (YYYY-MM-DD)."), "weight": _num("Weight on that date.")},
                        ["date", "weight"],
                    ),
                },
            },
            ["summaryText", "totalChange", "weeklyAverageChange", "unit", "chartData"],
        ),
        "caloriesIntake": _obj(
            "Calorie intake gauge.",
            {
                "averageDailyCalories": _num("Use insights.averageDailyCalories."),
                "userTargetCalories": _num("Use nutritionGoals.userTargetCalories."),
                "unit": _str("Calorie unit, default 'kcal'."),
                "status": {"type": "string", "enum": STATUS_ENUM, "description": "Calorie intake status."},
            },
            ["averageDailyCalories", "userTargetCalories", "unit", "status"],
        ),
        "macrosBreakdown": _obj(
            "Progress bars for the three macronutrients.",
            {
                "nutrients": {
                    "type": "array",
                    "description": "Exactly protein, carbs and fats.",
                    "minItems": 3,
                    "maxItems": 3,
                    "items": _obj(
                        "One macronutrient.",
                        {
                            "name": {"type": "string", "enum": MACRO_NAME_ENUM, "description": "Nutrient name."},
                            "actual": _num("Average daily grams from insights."),
                            "target": _num("Daily target grams."),
                            "unit": _str("Unit, default 'g'."),
                            "status": {"type": "string", "enum": STATUS_ENUM, "description": "Intake status."},
                        },
                        ["name", "actual", "target", "unit", "status"],
                    ),
                }
            },
            ["nutrients"],
        ),
        "insights": _obj(
            "Bulleted insight cards.",
            {
                "items": {
                    "type": "array",
                    "description": "2-4 key insights.",
                    "items": _obj(
                        "One insight.",
                        {
                            "type": {
                                "type": "string",
                                "enum": INSIGHT_TYPE_ENUM,
                                "description": "'highlight' praises, 'reminder' gently warns.",
                            },
                            "text": _str("One-sentence insight."),
                        },
                        ["type", "text"],
                    ),
                }
            },
            ["items"],
        ),
        "actionPlan": _obj(
            "Concrete next steps rendered as a checklist.",
            {
                "actions": {
                    "type": "array",
                    "description": "1-3 actionable suggestions.",
                    "items": {"type": "string"},
                    "minItems": 1,
                    "maxItems": 3,
                }
            },
            ["actions"],
        ),
        "goalPrediction": _obj(
            "Estimated time to reach the goal weight at the current trend.",
            {
                "text": _str("Realistic prediction compared against basicInfo.goal."),
                "weeksToGoal": _int("Use insights.weeksToGoal."),
                "bestWeeksToGoal": _int("Use insights.bestWeeksToGoal."),
                "averageDailyCalories": _num("Use insights.averageDailyCalories."),
                "bestTargetCalories": _num(
                    "Pick the reasonable target between nutritionGoals.userTargetCalories and "
                    "nutritionGoals.bestTargetCalories."
                ),
            },
            ["text", "weeksToGoal", "averageDailyCalories", "bestTargetCalories", "bestWeeksToGoal"],
        ),
        "workoutEatingConsistency": _obj(
            "Regularity of food logging and exercise over the period.",
            {
                "totalExerciseTimes": _int("Use insights.totalExerciseTimes."),
                "averageExercisePerWeek": _num("Use insights.averageExercisePerWeek."),
                "averageDailySteps": _num("Use insights.averageDailySteps."),
                "totalFoodTrackedDays": _int("Use insights.totalFoodTrackedDays."),
                "summaryText": _str("Encouraging summary of logging and exercise regularity."),
            },
            [
                "totalExerciseTimes",
                "averageExercisePerWeek",
                "averageDailySteps",
                "totalFoodTrackedDays",
                "summaryText",
            ],
        ),
        "foodAnalysis": _obj(
            "Quality of the food choices in the diet records.",
            {
                "bestFoods": _food_items(
                    "2-3 high quality choices; empty when there are no diet records.",
                    "highlights",
                    "2-3 short nutrition highlights such as 'high protein'.",
                ),
                "worstFoods": _food_items(
                    "2-3 choices to improve; empty when there are no diet records.",
                    "issues",
                    "2-3 short issues such as 'high sodium'.",
                ),
                "summaryText": _str("Overall diet quality summary, or a note that diet logging is needed."),
            },
            ["bestFoods", "worstFoods", "summaryText"],
        ),
    },
    [
        "reportSummary",
        "weightTrend",
        "caloriesIntake",
        "macrosBreakdown",
        "insights",
        "actionPlan",
        "workoutEatingConsistency",
        "goalPrediction",
        "foodAnalysis",
    ],
)


def report_tools() -> list[dict[str, Any]]:
    return [
        {
            "functionDeclarations": [
                {
                    "name": HEALTH_REPORT_FUNCTION_NAME,
                    "description": (
                        "Generate structured JSON data for health report visualization based on user health data."
                    ),
                    "parameters": HEALTH_REPORT_SCHEMA,
                }
            ]
        }
    ]


def report_tool_config() -> dict[str, Any]:
    return {
        "functionCallingConfig": {
            "mode": "ANY",
            "allowedFunctionNames": [HEALTH_REPORT_FUNCTION_NAME],
        }
    }
