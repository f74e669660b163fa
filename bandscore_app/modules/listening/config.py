# File: bandscore_app/modules/listening/config.py


class ListeningDefaultConfig:
    """
    Policy constants for the Listening scoring engine.
    """

    QUESTION_TYPES = ('mcq', 'gap', 'match')

    # Source type names -> engine type. Anything not listed is rejected.
    QUESTION_TYPE_ALIASES = {
        'mcq': 'mcq',
        'choice': 'mcq',
        'multiple_choice': 'mcq',
        'multiple_choice_single': 'mcq',

        'gap': 'gap',
        'gap_fill': 'gap',
        'form_completion': 'gap',
        'note_completion': 'gap',
        'table_completion': 'gap',
        'diagram_completion': 'gap',
        'sentence_completion': 'gap',
        'summary_completion': 'gap',
        'flowchart_completion': 'gap',
        'short_answer': 'gap',

        'match': 'match',
        'matching': 'match',
        'map': 'match',
        'plan': 'match',
        'map_labelling': 'match',
        'plan_labelling': 'match',
    }

    # (last question number of the band, section). Numbers past 30 are section 4.
    SECTION_BANDS = (
        (10, 1),
        (20, 2),
        (30, 3),
    )
    LAST_SECTION = 4
    SECTION_NUMBERS = (1, 2, 3, 4)

    # (minimum percentage correct, band), checked top-down, first match wins.
    BAND_THRESHOLDS = (
        (95, 9.0),
        (90, 8.5),
        (85, 8.0),
        (80, 7.5),
        (75, 7.0),
        (70, 6.5),
        (60, 6.0),
        (50, 5.5),
        (40, 5.0),
        (30, 4.5),
    )
    BAND_FLOOR = 4.0

    DEFAULT_DURATION_SECONDS = 30 * 60
    SUMMARY_ATTEMPT_LIMIT = 50
