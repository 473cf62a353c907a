"""Tests for builds/injection.py module."""

from imagechain.builds.injection import (
    InjectionOptions,
    compose_install_command,
    inject_instructions,
)
from imagechain.descriptors.image import BaseImage


def rendered(image: BaseImage) -> list[str]:
    return image.to_manifest().splitlines()[1:]


class TestComposeInstallCommand:
    """Tests for compose_install_command function."""

    def test_default(self):
        """Should install without dev dependencies."""
        cmd = compose_install_command("/srv/app", InjectionOptions())

        assert cmd == [
            "php",
            "/usr/share/composer/composer.phar",
            "--no-interaction",
            "--no-dev",
            "--working-dir=/srv/app",
            "install",
        ]

    def test_debug_is_verbose(self):
        """Debug mode should add -vvv before the subcommand."""
        cmd = compose_install_command("/srv/app", InjectionOptions(debug=True))

        assert cmd[-2:] == ["-vvv", "install"]


class TestInjectInstructions:
    """Tests for inject_instructions function."""

    def test_no_token_no_targets(self):
        """Only the git protocol rewrite should be added."""
        image = BaseImage("ubuntu")

        result = inject_instructions(image, None, InjectionOptions())

        assert result is image
        assert rendered(image) == [
            'RUN ["git", "config", "--global", '
            '"url.https://github.com/.insteadOf", "git://github.com/"]'
        ]

    def test_rewrite_disabled(self):
        """Nothing is added without rewrite, token or targets."""
        image = BaseImage("ubuntu")

        inject_instructions(image, None, InjectionOptions(git_protocol_rewrite=False))

        assert image.instructions == []

    def test_token_without_targets_is_unset(self):
        """A token injected without install targets should be removed again."""
        image = BaseImage("ubuntu")

        inject_instructions(
            image, "tok", InjectionOptions(git_protocol_rewrite=False)
        )

        assert rendered(image) == [
            'RUN ["git", "config", "--global", "github.accesstoken", "tok"]',
            'RUN ["git", "config", "--global", "--unset", "github.accesstoken"]',
        ]

    def test_install_targets(self):
        """Installer, auth file, install runs and cleanup should be appended."""
        image = BaseImage("php:8", install_targets=["/srv/app", "/srv/lib"])
        options = InjectionOptions(auth_file_available=True)

        inject_instructions(image, "tok", options)
        lines = rendered(image)

        assert lines[0].startswith('RUN ["git", "config", "--global", "url.')
        assert lines[1] == (
            'RUN ["git", "config", "--global", "github.accesstoken", "tok"]'
        )
        assert lines[2] == "ADD auth.json /root/.composer/auth.json"
        assert lines[3] == "ADD composer.phar /usr/share/composer/composer.phar"
        assert "--working-dir=/srv/app" in lines[4]
        assert "--working-dir=/srv/lib" in lines[5]
        assert lines[6] == (
            'RUN ["rm", "-rf", "/usr/share/composer/composer.phar", '
            '"/root/.composer", "/root/.gitconfig"]'
        )
        assert len(lines) == 7

    def test_install_without_auth_file(self):
        """Auth file is only added when present in the build context."""
        image = BaseImage("php:8", install_targets=["/srv/app"])

        inject_instructions(
            image, None, InjectionOptions(git_protocol_rewrite=False)
        )

        assert not any(line.startswith("ADD auth.json") for line in rendered(image))
        assert rendered(image)[0].startswith("ADD composer.phar")

    def test_custom_installer(self):
        """Custom installer names and paths should be used."""
        image = BaseImage("php:8", install_targets=["/app"])
        options = InjectionOptions(
            installer_name="composer-2.phar",
            image_installer_path="/opt/composer.phar",
            git_protocol_rewrite=False,
        )

        inject_instructions(image, None, options)

        assert "ADD composer-2.phar /opt/composer.phar" in rendered(image)
