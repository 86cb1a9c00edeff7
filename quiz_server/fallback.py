"""
Embedded question set served when the provider cannot be reached
"""
import random
from typing import Dict, List, Optional

from .questions import shuffled
from .state import Question

# category -> (question, options, correct index, difficulty)
FALLBACK_QUESTIONS: Dict[str, List[tuple]] = {
    "general_knowledge": [
        ("What is the capital of India?", ["New Delhi", "Mumbai", "Kolkata", "Chennai"], 0, "easy"),
        ("How many continents are there on Earth?", ["Five", "Six", "Seven", "Eight"], 2, "easy"),
        ("Which planet is known as the Red Planet?", ["Venus", "Mars", "Jupiter", "Mercury"], 1, "easy"),
        ("What is the largest ocean on Earth?", ["Atlantic", "Indian", "Arctic", "Pacific"], 3, "medium"),
    ],
    "technology": [
        ("What does CPU stand for?", ["Central Processing Unit", "Computer Personal Unit",
                                      "Central Program Utility", "Core Processing Unit"], 0, "easy"),
        ("Which organisation stewards the Python language?", ["Google", "Microsoft",
                                                               "Python Software Foundation", "Sun Microsystems"], 2, "medium"),
        ("How many bits are in a byte?", ["4", "8", "16", "32"], 1, "easy"),
        ("What does HTTP stand for?", ["HyperText Transfer Protocol", "High Transfer Text Protocol",
                                       "Hyperlink Transmission Program", "Host Transfer Protocol"], 0, "medium"),
    ],
    "indian_history": [
        ("In which year did India gain independence?", ["1945", "1947", "1950", "1942"], 1, "easy"),
        ("Who was the first Prime Minister of India?", ["Sardar Patel", "B. R. Ambedkar",
                                                        "Jawaharlal Nehru", "Rajendra Prasad"], 2, "easy"),
        ("Which emperor built the Taj Mahal?", ["Akbar", "Shah Jahan", "Babur", "Aurangzeb"], 1, "medium"),
        ("The Battle of Plassey was fought in which year?", ["1757", "1764", "1857", "1707"], 0, "hard"),
    ],
    "indian_culture": [
        ("Which festival is known as the festival of lights?", ["Holi", "Eid", "Diwali", "Onam"], 2, "easy"),
        ("Kathakali is a classical dance form of which state?", ["Tamil Nadu", "Kerala",
                                                                 "Odisha", "Manipur"], 1, "medium"),
        ("Which instrument is Ravi Shankar famous for?", ["Tabla", "Veena", "Sarod", "Sitar"], 3, "medium"),
    ],
    "bollywood": [
        ("Which film features the character 'Gabbar Singh'?", ["Sholay", "Deewaar", "Don", "Zanjeer"], 0, "easy"),
        ("Who is known as the 'King Khan' of Bollywood?", ["Salman Khan", "Aamir Khan",
                                                           "Shah Rukh Khan", "Saif Ali Khan"], 2, "easy"),
        ("Which was India's first sound film?", ["Raja Harishchandra", "Alam Ara",
                                                 "Kisan Kanya", "Mother India"], 1, "hard"),
    ],
    "cricket": [
        ("How many players are on a cricket team on the field?", ["9", "10", "11", "12"], 2, "easy"),
        ("Who scored the first double century in men's ODI cricket?", ["Virender Sehwag", "Rohit Sharma",
                                                                        "Sachin Tendulkar", "Chris Gayle"], 2, "medium"),
        ("In which year did India win its first Cricket World Cup?", ["1975", "1983", "1987", "2011"], 1, "medium"),
    ],
}


def fallback_questions(
    category: Optional[str],
    count: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Shuffled local questions for a category (or all categories), options reshuffled"""
    rng = rng or random.Random()
    if category in FALLBACK_QUESTIONS:
        pool = list(FALLBACK_QUESTIONS[category])
    else:
        pool = [entry for entries in FALLBACK_QUESTIONS.values() for entry in entries]

    pool = shuffled(pool, rng)
    if count is not None:
        pool = pool[:max(count, 0)]

    questions = []
    for text, options, correct, difficulty in pool:
        reordered = shuffled(options, rng)
        questions.append(
            Question(
                text=text,
                options=tuple(reordered),
                correct=reordered.index(options[correct]),
                difficulty=difficulty,
            )
        )
    return questions
