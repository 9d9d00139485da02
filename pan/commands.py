"""
Registry of every shell command pan may run.

Each alias maps to a builder that turns an optional context
into `(command, label)`. Callers never compose shell strings
for registry operations themselves; they resolve an alias and
hand the instance to the execution layer.
"""
from dataclasses import dataclass, field
from typing import Callable, Mapping
import shlex


FFYC_COMMAND = (
    'find packages -name "build" -type d -exec rm -rf {} + 2>/dev/null'
    ' && find packages -name "tsconfig.tsbuildinfo" -type f -delete'
    ' && find . -name "node_modules" -type d -exec rm -rf {} + 2>/dev/null'
)
ARTIFACTS_CLEAN_COMMAND = (
    'find packages -name "build" -type d -exec rm -rf {} + 2>/dev/null;'
    ' find . -name "*.tsbuildinfo" -type f -not -path "*/node_modules/*"'
    ' -delete 2>/dev/null; true'
)
LLAMA_CONTAINER = "pan-llama3"
LLAMA_IMAGE     = "ollama/ollama:latest"
LLAMA_MODEL     = "llama3"

Context = Mapping[str, object]
Builder = Callable[[Context], tuple[str, str]]


class UnknownCommandAlias(KeyError):
    """Alias is not present in the registry."""


@dataclass(frozen=True)
class CommandDefinition:
    alias: str
    description: str
    categories: tuple[str, ...]
    build: Builder = field(repr=False)
    toolkit: bool = False
    # shell alias form for builders that need arguments
    shell: str | None = None


@dataclass(frozen=True)
class CommandInstance:
    alias: str
    command: str
    label: str


def _q(value: object) -> str:
    return shlex.quote(str(value))


def _text(ctx: Context, key: str, default: str = "") -> str:
    value = ctx.get(key, default)
    return default if value is None else str(value)


def _required(ctx: Context, key: str, alias: str) -> str:
    value = _text(ctx, key).strip()
    if not value:
        raise ValueError(f"command {alias!r} requires {key!r}")
    return value


def _static(command: str, label: str) -> Builder:
    return lambda _ctx: (command, label)


def _rebase(ctx: Context) -> tuple[str, str]:
    target    = _required(ctx, "target", "grb")
    autostash = ctx.get("autostash", True)
    flag      = " --autostash" if autostash else ""
    return f"git rebase{flag} {_q(target)}", f"git rebase {target}"


def _show_ref(ctx: Context) -> tuple[str, str]:
    ref = _required(ctx, "ref", "gsref")
    return f"git show-ref --verify --quiet {_q(ref)}", f"verify {ref}"


def _git_path(ctx: Context) -> tuple[str, str]:
    name = _required(ctx, "name", "ggp")
    return f"git rev-parse --git-path {_q(name)}", f"git path {name}"


def _upstream(ctx: Context) -> tuple[str, str]:
    branch = _text(ctx, "branch", "HEAD") or "HEAD"
    ref    = f"{branch}@{{upstream}}"
    return (f"git rev-parse --abbrev-ref --symbolic-full-name {_q(ref)}",
            f"upstream of {branch}")


def _count(ctx: Context) -> tuple[str, str]:
    base = _required(ctx, "base", "gcount")
    head = _text(ctx, "head", "HEAD") or "HEAD"
    return (f"git rev-list --left-right --count {_q(f'{base}...{head}')}",
            f"compare {head} with {base}")


def _stash_push(ctx: Context) -> tuple[str, str]:
    message = _text(ctx, "message", "pan stash")
    return (f"git stash push --include-untracked -m {_q(message)}",
            "git stash push")


def _stash_ref(alias: str, verb: str) -> Builder:
    def _build(ctx: Context) -> tuple[str, str]:
        ref = _required(ctx, "ref", alias)
        return f"git stash {verb} {_q(ref)}", f"git stash {verb} {ref}"
    return _build


def _commit(ctx: Context) -> tuple[str, str]:
    subject = _required(ctx, "subject", "gcmsg")
    body    = _text(ctx, "body").strip()
    command = f"git commit -m {_q(subject)}"
    if body: command += f" -m {_q(body)}"
    return command, "git commit"


def _checkout_branch(ctx: Context) -> tuple[str, str]:
    branch = _required(ctx, "branch", "gcb")
    return f"git checkout -b {_q(branch)}", f"git checkout -b {branch}"


def _push_upstream(ctx: Context) -> tuple[str, str]:
    branch = _required(ctx, "branch", "gpsup")
    remote = _text(ctx, "remote", "origin") or "origin"
    return (f"git push -u {_q(remote)} {_q(branch)}",
            f"git push -u {remote} {branch}")


def _workspace_script(ctx: Context) -> tuple[str, str]:
    command = _required(ctx, "command", "workspace-script")
    return command, _text(ctx, "label", command)


def _docker_cmd(ctx: Context, key: str, default: str) -> str:
    return _text(ctx, key, default) or default


def _docker_pull(ctx: Context) -> tuple[str, str]:
    image = _docker_cmd(ctx, "image", LLAMA_IMAGE)
    return f"docker pull {_q(image)}", f"docker pull {image}"


def _docker_inspect(ctx: Context) -> tuple[str, str]:
    name = _docker_cmd(ctx, "container", LLAMA_CONTAINER)
    return (f"docker inspect -f '{{{{.State.Running}}}}' {_q(name)}",
            f"docker inspect {name}")


def _docker_run(ctx: Context) -> tuple[str, str]:
    name  = _docker_cmd(ctx, "container", LLAMA_CONTAINER)
    image = _docker_cmd(ctx, "image", LLAMA_IMAGE)
    return (f"docker run -d --name {_q(name)} -p 11434:11434 "
            f"-v ollama:/root/.ollama {_q(image)}",
            f"docker run {name}")


def _docker_start(ctx: Context) -> tuple[str, str]:
    name = _docker_cmd(ctx, "container", LLAMA_CONTAINER)
    return f"docker start {_q(name)}", f"docker start {name}"


def _docker_exec_pull(ctx: Context) -> tuple[str, str]:
    name  = _docker_cmd(ctx, "container", LLAMA_CONTAINER)
    model = _docker_cmd(ctx, "model", LLAMA_MODEL)
    return (f"docker exec {_q(name)} ollama pull {_q(model)}",
            f"ollama pull {model}")


def _docker_exec_run(ctx: Context) -> tuple[str, str]:
    name  = _docker_cmd(ctx, "container", LLAMA_CONTAINER)
    model = _docker_cmd(ctx, "model", LLAMA_MODEL)
    return (f"docker exec -i {_q(name)} ollama run {_q(model)}",
            f"ollama run {model}")


_DEFINITIONS: tuple[CommandDefinition, ...] = (
    # git
    CommandDefinition("gfo", "Fetch origin and prune deleted refs",
        ("git", "sync"), _static("git fetch origin --prune",
        "git fetch origin --prune"), toolkit=True),
    CommandDefinition("gcur", "Print the current branch name",
        ("git", "inspect"), _static("git rev-parse --abbrev-ref HEAD",
        "current branch")),
    CommandDefinition("gsref", "Check that a ref exists",
        ("git", "inspect"), _show_ref),
    CommandDefinition("grb", "Rebase onto a target ref",
        ("git", "sync"), _rebase, toolkit=True,
        shell="git rebase --autostash"),
    CommandDefinition("grba", "Abort an in-progress rebase",
        ("git", "sync", "recovery"), _static("git rebase --abort",
        "git rebase --abort"), toolkit=True),
    CommandDefinition("ggp", "Resolve a path inside the git directory",
        ("git", "inspect"), _git_path),
    CommandDefinition("gsb", "Short status with branch information",
        ("git", "inspect"), _static("git status --short --branch",
        "git status --short --branch"), toolkit=True),
    CommandDefinition("gss", "Short status of the working tree",
        ("git", "inspect"), _static("git status --short",
        "git status --short"), toolkit=True),
    CommandDefinition("gstp", "Porcelain status including untracked",
        ("git", "inspect"), _static(
        "git status --porcelain --untracked-files=all",
        "git status --porcelain")),
    CommandDefinition("gup", "Upstream tracking ref of a branch",
        ("git", "inspect"), _upstream),
    CommandDefinition("gcount", "Left/right commit counts between refs",
        ("git", "inspect"), _count),
    CommandDefinition("gsta", "Stash everything including untracked files",
        ("git", "stash"), _stash_push, toolkit=True,
        shell="git stash push --include-untracked -m"),
    CommandDefinition("gstl", "Newest stash reference",
        ("git", "stash"), _static("git stash list --format=%gd -1",
        "git stash list"), toolkit=True),
    CommandDefinition("gstaa", "Apply a stash entry",
        ("git", "stash"), _stash_ref("gstaa", "apply"), toolkit=True,
        shell="git stash apply"),
    CommandDefinition("gstd", "Drop a stash entry",
        ("git", "stash"), _stash_ref("gstd", "drop"), toolkit=True,
        shell="git stash drop"),
    CommandDefinition("gaa", "Stage all changes",
        ("git", "commit"), _static("git add --all", "git add --all"),
        toolkit=True),
    CommandDefinition("gcmsg", "Commit staged changes with a message",
        ("git", "commit"), _commit, toolkit=True,
        shell="git commit -m"),
    CommandDefinition("gcn", "Amend the last commit without editing",
        ("git", "commit"), _static("git commit --amend --no-edit",
        "git commit --amend --no-edit"), toolkit=True),
    CommandDefinition("gcb", "Create and switch to a new branch",
        ("git", "branch"), _checkout_branch, toolkit=True,
        shell="git checkout -b"),
    CommandDefinition("gpsup", "Push and set upstream tracking",
        ("git", "push"), _push_upstream, toolkit=True,
        shell="git push -u origin"),
    # package manager
    CommandDefinition("ycc", "Clean the yarn cache",
        ("yarn", "remediation"), _static("yarn cache clean",
        "yarn cache clean"), toolkit=True),
    CommandDefinition("yi", "Install dependencies",
        ("yarn", "remediation"), _static("yarn install",
        "yarn install"), toolkit=True),
    CommandDefinition("yb", "Run the root build",
        ("yarn", "build"), _static("yarn build", "yarn build"),
        toolkit=True),
    CommandDefinition("yl", "Run the root lint",
        ("yarn", "checks"), _static("yarn lint", "yarn lint"),
        toolkit=True),
    CommandDefinition("ytc", "Run the root type-check",
        ("yarn", "checks"), _static("yarn type-check",
        "yarn type-check"), toolkit=True),
    CommandDefinition("ylf", "Run lint with automatic fixes",
        ("yarn", "checks"), _static("yarn lint --fix",
        "yarn lint --fix"), toolkit=True),
    CommandDefinition("ydik", "Fail when the index is dirty",
        ("yarn", "checks"), _static("yarn dirty-index-check",
        "yarn dirty-index-check"), toolkit=True),
    CommandDefinition("ywls", "List workspaces as JSON lines",
        ("yarn", "inspect"), _static("yarn workspaces list --json",
        "yarn workspaces list")),
    # remediation
    CommandDefinition("prisma-generate", "Regenerate the Prisma client",
        ("remediation",), _static("npx prisma generate",
        "prisma generate"), toolkit=True),
    CommandDefinition("ycln", "Remove build output and tsbuildinfo files",
        ("remediation",), _static(ARTIFACTS_CLEAN_COMMAND,
        "clean build artifacts")),
    CommandDefinition("ffyc", "Deep clean: build output, tsbuildinfo and node_modules",
        ("remediation", "destructive"), _static(FFYC_COMMAND,
        "deep clean workspace"), toolkit=True),
    CommandDefinition("workspace-script", "Run an explicit workspace script command",
        ("yarn", "build"), _workspace_script),
    # docker (local assistant)
    CommandDefinition("docker-pull", "Pull the local LLM image",
        ("docker", "assistant"), _docker_pull),
    CommandDefinition("docker-inspect", "Check whether the LLM container runs",
        ("docker", "assistant"), _docker_inspect),
    CommandDefinition("docker-run", "Create and start the LLM container",
        ("docker", "assistant"), _docker_run),
    CommandDefinition("docker-start", "Start the existing LLM container",
        ("docker", "assistant"), _docker_start),
    CommandDefinition("docker-exec-pull", "Pull the model inside the container",
        ("docker", "assistant"), _docker_exec_pull),
    CommandDefinition("docker-exec-run", "Run the model inside the container",
        ("docker", "assistant"), _docker_exec_run),
)

REGISTRY: dict[str, CommandDefinition] = {
    d.alias: d for d in _DEFINITIONS
}


def get_definition(alias: str) -> CommandDefinition:
    try: return REGISTRY[alias]
    except KeyError:
        raise UnknownCommandAlias(alias) from None


def resolve_command(alias: str, ctx: Context | None = None,
                    **extra: object) -> CommandInstance:
    """Build the concrete command for `alias`."""
    definition = get_definition(alias)
    merged     = {**(ctx or {}), **extra}
    command, label = definition.build(merged)
    override_cmd   = merged.get("command")
    override_label = merged.get("label")
    if alias != "workspace-script" and override_cmd:
        command = str(override_cmd)
    if override_label: label = str(override_label)
    return CommandInstance(alias=alias, command=command, label=label)


def list_toolkit_commands() -> list[CommandDefinition]:
    return sorted((d for d in _DEFINITIONS if d.toolkit),
                  key=lambda d: d.alias)


def list_all_commands() -> list[CommandDefinition]:
    return list(_DEFINITIONS)
