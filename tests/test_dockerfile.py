"""
Tests for the Dockerfile generator.
"""

from pathlib import Path

from provisioner.core.config.loader import load_builtin_recipe, parse_recipe, resolve_recipe
from provisioner.core.services.generators.dockerfile import generate_dockerfile, render_dockerfile


class TestRenderDockerfile:
    def setup_method(self):
        self.text = render_dockerfile(load_builtin_recipe("cwe-checker"))
        self.lines = self.text.splitlines()

    def test_from_and_entrypoint(self):
        assert self.lines[0] == "FROM ubuntu:bionic"
        assert self.lines[-1] == 'ENTRYPOINT ["opam", "config", "exec", "--"]'

    def test_installer_piped_answer(self):
        assert "yes /usr/local/bin | sh /tmp/opam-install.sh" in self.text

    def test_user_switch(self):
        assert "USER bap" in self.lines
        assert "WORKDIR /home/bap" in self.lines
        assert "echo bap:bap | chpasswd" in self.text

    def test_sudo_check_runs_as_new_user(self):
        assert self.text.count("sudo -n true") == 1
        assert self.lines.index("RUN sudo -n true") > self.lines.index("USER bap")

    def test_user_switch_precedes_user_steps(self):
        assert self.lines.index("USER bap") < next(
            i for i, line in enumerate(self.lines) if "opam init" in line
        )

    def test_elevated_step_uses_sudo(self):
        assert "RUN sudo -EH pip install bap" in self.lines

    def test_copy_and_chown(self):
        assert "COPY . /home/bap/cwe_checker/" in self.lines
        assert "RUN sudo -EH chown -R bap:bap /home/bap/cwe_checker" in self.lines

    def test_path_extension(self):
        path_line = next(line for line in self.lines if line.startswith("ENV PATH="))
        assert path_line.startswith('ENV PATH="/home/bap/.opam/4.05.0/bin:')

    def test_build_changes_directory(self):
        build = next(line for line in self.lines if "bapbuild" in line or "cd /home/bap/cwe_checker/src" in line)
        assert build.startswith("RUN cd /home/bap/cwe_checker/src")

    def test_opam_jobs(self):
        assert any("env OPAMJOBS=1 opam depext --install --yes bap" in line for line in self.lines)


class TestRenderMinimal:
    def test_base_user_and_variables(self):
        recipe = parse_recipe(
            "name: r\nbase_image: debian:12\n"
            "base: {user: app, home: /home/app, working_dir: /srv, variables: {LANG: C.UTF-8}}\n"
            "steps:\n  - {id: a, command: make}\n"
        )
        lines = render_dockerfile(recipe).splitlines()
        assert lines[0] == "FROM debian:12"
        assert 'ENV LANG="C.UTF-8"' in lines
        assert "USER app" in lines
        assert "WORKDIR /srv" in lines
        assert "RUN make" in lines
        assert not any(line.startswith("ENTRYPOINT") for line in lines)

    def test_no_sudo_check_without_switch(self):
        recipe = parse_recipe(
            "name: r\nsteps:\n"
            "  - {id: u, kind: user, username: ci, switch: false}\n"
        )
        text = render_dockerfile(recipe)
        assert "useradd" in text
        assert "sudo -n true" not in text
        assert "USER ci" not in text


class TestGenerateDockerfile:
    def test_generated_file(self, recipe_dir: Path):
        generated = generate_dockerfile(resolve_recipe(cwd=recipe_dir))
        assert generated.path == "Dockerfile"
        assert generated.content.startswith("FROM ubuntu:bionic")
        assert "small" in generated.reason
