"""Static metadata describing QuizLive."""

APP_NAME = "QuizLive"
APP_VERSION = "0.2"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizLive is a classroom quiz platform built with FastAPI. "
    "Teachers author multiple-choice quizzes and host them live, "
    "students join from the browser with a six-character code."
)

IMPORT_HELP_TEXT = (
    "Quizzes can be imported from a .txt file using the format:\n\n"
    "Q: What is $30^o$ in radians?\n"
    "A: $\\frac{\\pi}{4}$\nB: $\\frac{\\pi}{6}$\nC: $\\frac{\\pi}{2}$\nD: $\\frac{\\pi}{3}$\n"
    "CORRECT: B\nTIMELIMIT: 15\nPOINTS: 2\n"
    "EXPLANATION: $30^o = \\frac{30}{180}\\pi = \\frac{\\pi}{6}$\n\n"
    "Start each question with Q: or separate questions with '---'. "
    "TIMELIMIT (seconds, default 30), POINTS (default 1) and EXPLANATION are optional."
)
