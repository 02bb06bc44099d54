"""Rule building blocks shared by the bundled flows."""

from onboarding.rules import (
    LETTER_AND_DIGIT_PATTERN,
    USERNAME_PATTERN,
    Length,
    Matches,
    Required,
)

RESERVED_USERNAMES = frozenset({"admin", "root", "user", "guest", "test", "support", "help"})

THEMES = frozenset({"dark", "light"})

CONTACT_METHODS = frozenset({"email", "phone"})

USERNAME_CHARSET = Matches(
    "username",
    USERNAME_PATTERN,
    "invalid_characters",
    "Username can only contain letters, numbers, underscores, and hyphens",
)

PASSWORD_RULES = (
    Required("password", "Password is required"),
    Length("password", 8, 128, label="Password"),
    Matches(
        "password",
        LETTER_AND_DIGIT_PATTERN,
        "weak_password",
        "Password must contain at least one letter and one number",
    ),
)
