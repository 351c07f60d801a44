"""Command line interface for Secure Vault."""

from __future__ import annotations

import getpass
import logging
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Callable

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from secure_vault import __version__
from secure_vault.container import api
from secure_vault.container.engine import ProgressCallback
from secure_vault.crypto.aead import cipher_for, parse_algorithm
from secure_vault.crypto.kdf import (
    DEFAULT_MEM_COST_KIB,
    DEFAULT_PARALLELISM,
    DEFAULT_TIME_COST,
    resolve_kdf_params,
)
from secure_vault.errors import (
    ContainerFormatError,
    DecryptionFailed,
    KdfError,
    NonceLimitExceeded,
    RngFailure,
    VaultIOError,
)

EXIT_SUCCESS = 0
EXIT_USAGE = 1
EXIT_CRYPTO = 2
EXIT_FS = 3
EXIT_CORRUPT = 4

PASSWORD_ENV_VAR = "VAULT_PASSWORD"

console = Console()


def _package_version() -> str:
    try:
        return version("secure-vault")
    except PackageNotFoundError:
        return __version__


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _prompt_password(password_opt: str | None, *, confirm: bool) -> str | None:
    if password_opt is not None:
        password = password_opt
    else:
        password = getpass.getpass("Password: ")
        if confirm and password and getpass.getpass("Confirm password: ") != password:
            console.print("[red]Passwords do not match[/red]")
            return None
    if not password:
        console.print("[red]Password required[/red]")
        return None
    return password


def _human_size(num: float) -> str:
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if num < 1024 or unit == "TB":
            return f"{num:.1f} {unit}" if unit != "B" else f"{int(num)} {unit}"
        num /= 1024
    return f"{num:.1f} TB"


def _with_progress(description: str, action: Callable[[ProgressCallback], int]) -> Callable[[], int]:
    def _run() -> int:
        with Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(description, total=None)

            def _update(done: int, total: int | None) -> None:
                progress.update(task, completed=done, total=total)

            return action(_update)

    return _run


def _handle_action(action: Callable[[], object]) -> int:
    try:
        action()
    except DecryptionFailed:
        console.print("[red]Invalid password or corrupted file[/red]")
        return EXIT_CRYPTO
    except ContainerFormatError as exc:
        console.print(f"[red]Error: container is corrupted or not supported:[/red] {exc}")
        return EXIT_CORRUPT
    except KdfError as exc:
        console.print(f"[red]Invalid key derivation parameters:[/red] {exc}")
        return EXIT_USAGE
    except RngFailure as exc:
        console.print(f"[red]Secure randomness unavailable:[/red] {exc}")
        return EXIT_CRYPTO
    except NonceLimitExceeded as exc:
        console.print(f"[red]Input too large:[/red] {exc}")
        return EXIT_USAGE
    except VaultIOError as exc:
        console.print(f"[red]I/O error:[/red] {exc}")
        return EXIT_FS
    except FileExistsError as exc:
        console.print(f"[red]{exc}. Use --force to overwrite.[/red]")
        return EXIT_FS
    except FileNotFoundError as exc:
        console.print(f"[red]File not found:[/red] {exc}")
        return EXIT_FS
    except PermissionError as exc:
        console.print(f"[red]Permission denied:[/red] {exc}")
        return EXIT_FS
    except OSError as exc:  # noqa: BLE001
        console.print(f"[red]Filesystem error:[/red] {exc}")
        return EXIT_FS
    return EXIT_SUCCESS


@click.group(
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=False,
)
@click.version_option(version=_package_version(), prog_name="Secure Vault")
def cli() -> None:
    """Password-based file encryption with AES-256-GCM or ChaCha20-Poly1305."""


@cli.command(name="version", help="Show the installed version.")
def version_cmd() -> None:
    console.print(f"Secure Vault {_package_version()}")


@cli.command(
    help="Encrypt a file into a .vault container.",
    epilog="Examples:\n  secure-vault encrypt notes.txt\n  secure-vault encrypt db.sqlite db.vault --algorithm chacha20 --iterations 5",
)
@click.argument("input_path", type=click.Path(path_type=Path))
@click.argument("output_path", required=False, type=click.Path(path_type=Path))
@click.option(
    "--password",
    "password_opt",
    envvar=PASSWORD_ENV_VAR,
    help=f"Encryption password (read from ${PASSWORD_ENV_VAR} or prompted if omitted).",
)
@click.option(
    "-a",
    "--algorithm",
    type=click.Choice(["aes256gcm", "chacha20"], case_sensitive=False),
    default="aes256gcm",
    show_default=True,
    help="AEAD algorithm.",
)
@click.option(
    "-i",
    "--iterations",
    type=int,
    default=DEFAULT_TIME_COST,
    show_default=True,
    help="Argon2id time cost (can only be raised).",
)
@click.option("--memory-kib", type=int, default=DEFAULT_MEM_COST_KIB, show_default=True, help="Argon2id memory cost in KiB.")
@click.option("--parallelism", type=int, default=DEFAULT_PARALLELISM, show_default=True, help="Argon2id lanes.")
@click.option("-f", "--force", is_flag=True, default=False, help="Overwrite output if it already exists.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose output.")
@click.pass_context
def encrypt(
    ctx: click.Context,
    input_path: Path,
    output_path: Path | None,
    password_opt: str | None,
    algorithm: str,
    iterations: int,
    memory_kib: int,
    parallelism: int,
    force: bool,
    verbose: bool,
) -> None:
    _configure_logging(verbose)
    target = output_path or api.default_encrypt_output(input_path)
    if target.exists() and not force:
        console.print(f"[red]Output file already exists: {target}. Use --force to overwrite.[/red]")
        ctx.exit(EXIT_FS)
        return

    try:
        kdf_params = resolve_kdf_params(
            mem_cost_kib=memory_kib,
            time_cost=iterations,
            parallelism=parallelism,
        )
    except KdfError as exc:
        console.print(f"[red]Invalid key derivation parameters:[/red] {exc}")
        ctx.exit(EXIT_USAGE)
        return

    password = _prompt_password(password_opt, confirm=True)
    if password is None:
        ctx.exit(EXIT_USAGE)
        return
    suite = cipher_for(parse_algorithm(algorithm))

    if verbose:
        table = Table(show_header=False, box=None)
        table.add_row("Input", str(input_path))
        table.add_row("Output", str(target))
        table.add_row("Algorithm", suite.name)
        table.add_row(
            "Argon2id",
            f"mem={kdf_params.mem_cost_kib} KiB, time={kdf_params.time_cost}, p={kdf_params.parallelism}",
        )
        console.print("[bold]Secure Vault - encryption[/bold]")
        console.print(table)

    code = _handle_action(
        _with_progress(
            "Encrypting",
            lambda progress: api.encrypt_file(
                input_path,
                target,
                password,
                algorithm=suite.algorithm,
                kdf_params=kdf_params,
                overwrite=force,
                progress=progress,
            ),
        )
    )
    if code == EXIT_SUCCESS:
        size = target.stat().st_size if target.exists() else 0
        console.print(f"[green]Encrypted to[/green] {target} (~{_human_size(size)}).")
    ctx.exit(code)


@cli.command(
    help="Decrypt a .vault container.",
    epilog="Examples:\n  secure-vault decrypt notes.txt.vault\n  secure-vault decrypt db.vault db.sqlite --force",
)
@click.argument("container", type=click.Path(path_type=Path))
@click.argument("output_path", required=False, type=click.Path(path_type=Path))
@click.option(
    "--password",
    "password_opt",
    envvar=PASSWORD_ENV_VAR,
    help=f"Decryption password (read from ${PASSWORD_ENV_VAR} or prompted if omitted).",
)
@click.option("-f", "--force", is_flag=True, default=False, help="Overwrite output if it already exists.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose output.")
@click.pass_context
def decrypt(
    ctx: click.Context,
    container: Path,
    output_path: Path | None,
    password_opt: str | None,
    force: bool,
    verbose: bool,
) -> None:
    _configure_logging(verbose)
    out_path = output_path or api.default_decrypt_output(container)
    if out_path.exists() and not force:
        console.print(f"[red]Output file already exists: {out_path}. Use --force to overwrite.[/red]")
        ctx.exit(EXIT_FS)
        return

    password = _prompt_password(password_opt, confirm=False)
    if password is None:
        ctx.exit(EXIT_USAGE)
        return
    code = _handle_action(
        _with_progress(
            "Decrypting",
            lambda progress: api.decrypt_file(
                container,
                out_path,
                password,
                overwrite=force,
                progress=progress,
            ),
        )
    )
    if code == EXIT_SUCCESS:
        console.print(f"[green]Decrypted to[/green] {out_path}.")
    ctx.exit(code)


@cli.command(
    help="Display container header information without decrypting.",
    epilog="Example:\n  secure-vault info notes.txt.vault",
)
@click.argument("container", type=click.Path(path_type=Path))
@click.pass_context
def info(ctx: click.Context, container: Path) -> None:
    try:
        details = api.inspect_container(container)
    except ContainerFormatError as exc:
        console.print(f"[red]Unsupported or invalid container:[/red] {exc}")
        ctx.exit(EXIT_CORRUPT)
        return
    except FileNotFoundError as exc:
        console.print(f"[red]File not found:[/red] {exc}")
        ctx.exit(EXIT_FS)
        return
    except OSError as exc:
        console.print(f"[red]Cannot read container:[/red] {exc}")
        ctx.exit(EXIT_FS)
        return

    header = details.header
    params = header.kdf_params
    table = Table(show_header=False, box=None)
    table.add_row("Format version", str(header.version))
    table.add_row("Algorithm", header.suite.name)
    table.add_row("Salt", header.salt.hex())
    table.add_row("Base nonce", header.base_nonce.hex())
    table.add_row(
        "Argon2id",
        f"mem={params.mem_cost_kib} KiB, time={params.time_cost}, p={params.parallelism}",
    )
    table.add_row("Payload size", f"~{_human_size(details.payload_len)}")

    console.print("[bold]Secure Vault container[/bold]")
    console.print(table)
    ctx.exit(EXIT_SUCCESS)


def main(argv: list[str] | None = None) -> int:
    try:
        return cli.main(args=argv, prog_name="secure-vault", standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        return EXIT_USAGE
    except click.Abort:
        console.print("[yellow]Aborted.[/yellow]")
        return EXIT_USAGE
    except SystemExit as exc:  # noqa: TRY003
        code = exc.code if isinstance(exc.code, int) else EXIT_USAGE
        return code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
