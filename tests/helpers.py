ADMIN = {"x-admin-token": "test-admin"}
CLIENT_KEY = {"x-api-key": "test-key"}

FOUR_QUESTIONS = [
    {"question": "2 + 2 = ?", "options": ["4", "3", "5", "22"], "correct": 0},
    {"question": "Capital of France?", "options": ["Rome", "Paris", "Berlin"], "correct": 1},
    {"question": "H2O is?", "options": ["salt", "air", "water", "fire"], "correct": 2},
    {
        "question": "Largest planet?",
        "options": ["Mars", "Venus", "Earth", "Jupiter"],
        "correct": 3,
        "explanation": "Jupiter is the largest planet in the solar system.",
    },
]
ALL_CORRECT = {"q1": 0, "q2": 1, "q3": 2, "q4": 3}


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
