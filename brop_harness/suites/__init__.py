"""Built-in test programs and suites."""

from brop_harness.suite import TestProgram, TestSuite

ALL_PROGRAMS = [
    TestProgram(
        id="navigation",
        name="Tab creation and navigation",
        file="e2e_navigation.py",
        tags=["smoke"],
    ),
    TestProgram(
        id="page-content",
        name="Page content extraction",
        file="e2e_page_content.py",
        tags=["smoke"],
    ),
    TestProgram(
        id="evaluate-js",
        name="evaluate_js edge cases",
        file="e2e_evaluate_js.py",
        tags=["smoke"],
        timeout_seconds=120,
    ),
    TestProgram(
        id="element-detection",
        name="Element Detection Framework - Edge Cases",
        file="e2e_element_detection.py",
        tags=["element-detection"],
        timeout_seconds=300,
    ),
]


def get_suites() -> dict[str, TestSuite]:
    """Define the available suites."""
    smoke = [p for p in ALL_PROGRAMS if "smoke" in p.tags]
    detection = [p for p in ALL_PROGRAMS if "element-detection" in p.tags]
    return {
        "smoke": TestSuite(
            name="smoke",
            description="Quick sanity checks for the bridge command surface",
            programs=smoke,
        ),
        "element-detection": TestSuite(
            name="element-detection",
            description="Element detection framework edge cases",
            programs=detection,
        ),
        "full": TestSuite(
            name="full",
            description="Every bridge test program",
            programs=list(ALL_PROGRAMS),
        ),
    }
