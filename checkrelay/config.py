from pathlib import Path
from pydantic import AfterValidator, field_validator
from pydantic_settings import BaseSettings
from typing import Annotated


class Config(BaseSettings):
    host: str = '0.0.0.0'
    port: int = 8000
    debug: bool = False

    workdir_root: Annotated[Path, AfterValidator(lambda path: path.absolute())] = (
        Path('/tmp/checkrelay')
    )

    check_run_name: str = 'Elementor Tests'

    db_name: str = 'tests-db'
    db_user: str = 'root'
    db_password: str = 'root'
    db_host: str = 'localhost'

    slack_token: str = ''
    slack_channel: str = ''
    slack_workspace: str = 'elementor'

    # Token for the private companion repository
    access_token: str = ''

    gh_app_id: int | None = None
    # PEM encoded private key of the GitHub App
    gh_key: str | None = None
    # Used instead of the app installation token when set
    gh_token: str | None = None

    companion_repo: str = 'elementor/elementor-pro'
    companion_branch: str = 'develop'
    core_dir_name: str = 'elementor'
    companion_dir_name: str = 'elementor-pro'
    core_entrypoint: str = 'elementor.php'

    build_commands: list[list[str]] = [
        ['npm', 'install'],
        ['npx', 'grunt', 'scripts'],
    ]
    test_env_install_command: list[str] = ['bash', './bin/install-wp-tests.sh']
    stale_plugin_dir: Path = Path('/tmp/wordpress/wp-content/plugins/elementor')
    server_runner_path: str = 'vendor/bin/phpunit'
    server_runner_install_command: list[str] = [
        'composer',
        'require',
        'phpunit/phpunit:7.5.9',
    ]
    server_suite_name: str = 'PHPUnit'
    server_suite_command: list[str] = ['./vendor/bin/phpunit', '-v']
    server_suite_env_var: str = 'WP_TESTS_ELEMENTOR_DIR'
    client_suite_name: str = 'Jest'
    client_suite_command: list[str] = ['npm', 'run', 'test:jest']

    # noinspection PyNestedDecorators
    @field_validator('gh_key', 'gh_token', mode='before')
    @classmethod
    def empty_as_none(cls, v: str | None):
        if v == '':
            return None
        return v

    # noinspection PyNestedDecorators
    @field_validator('companion_repo')
    @classmethod
    def v_companion_repo(cls, v: str):
        owner, sep, name = v.partition('/')
        if not sep or not owner or not name or '/' in name:
            raise ValueError('companion_repo must look like owner/name')
        return v

    @property
    def companion_clone_url(self) -> str:
        return f'https://github.com/{self.companion_repo}.git'


config = Config(_env_file='.env', _env_prefix='CHECKRELAY_')

__all__ = ['Config', 'config']
