import unittest

from src.domain.exceptions import InvalidReferenceException
from src.domain.identity import canonical_url, resolve_reference
from src.domain.models import RepositoryIdentity


class TestResolveReference(unittest.TestCase):
    def test_accepts_common_reference_shapes(self) -> None:
        references = [
            "https://github.com/acme/widget",
            "http://www.github.com/acme/widget/",
            "https://github.com/acme/widget.git",
            "github.com/acme/widget",
            "git@github.com:acme/widget.git",
            "ssh://git@github.com/acme/widget",
            "https://github.com/acme/widget/tree/main?tab=readme#top",
            "acme/widget",
            "  acme/widget.git  ",
        ]
        for reference in references:
            with self.subTest(reference=reference):
                self.assertEqual(
                    resolve_reference(reference),
                    RepositoryIdentity(owner="acme", name="widget"),
                )

    def test_preserves_case_and_dots_in_name(self) -> None:
        identity = resolve_reference("https://github.com/vercel/Next.js")
        self.assertEqual(identity.owner, "vercel")
        self.assertEqual(identity.name, "Next.js")

    def test_rejects_malformed_references(self) -> None:
        references = [
            "",
            "   ",
            "widget",
            "https://github.com/acme",
            "https://gitlab.com/acme/widget",
            "not a url",
            "acme/widget/extra",
            "-acme/widget",
            "ac--me/widget",
            "acme/.git",
            "acme/..",
            "github.com/acme",
        ]
        for reference in references:
            with self.subTest(reference=reference):
                with self.assertRaises(InvalidReferenceException):
                    resolve_reference(reference)

    def test_non_string_reference_is_invalid(self) -> None:
        with self.assertRaises(InvalidReferenceException):
            resolve_reference(None)

    def test_canonical_url(self) -> None:
        identity = RepositoryIdentity(owner="facebook", name="react")
        self.assertEqual(canonical_url(identity), "https://github.com/facebook/react")
