"""Remote server bootstrap over an authenticated session.

The install script downloads the server tarball (if not already present),
starts the server, and reports back on stdout between two marker lines::

    <id>: start
    exitCode==0==
    listeningOn==43117==
    connectionToken==...==
    <id>: end
"""

import logging
import re
import secrets
import shlex
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ssh_remote.errors import BootstrapError
from ssh_remote.models import InstallResult
from ssh_remote.services.release import fetch_release

if TYPE_CHECKING:
    import asyncssh

logger = logging.getLogger(__name__)

_RESULT_LINE = re.compile(r"^(\w+)==(.*)==$")

INSTALL_SCRIPT = """
SERVER_APP_NAME={app_name}
SERVER_DATA_DIR="$HOME/{data_folder}"
SERVER_DIR="$SERVER_DATA_DIR/bin/{commit}"
SERVER_SCRIPT="$SERVER_DIR/bin/$SERVER_APP_NAME"
SERVER_LOGFILE="$SERVER_DATA_DIR/.{commit}.log"
SERVER_PIDFILE="$SERVER_DATA_DIR/.{commit}.pid"
SERVER_TOKENFILE="$SERVER_DATA_DIR/.{commit}.token"
SERVER_LISTEN_FLAG={listen_flag}
SERVER_INITIAL_EXTENSIONS={extensions}
DOWNLOAD_URL_TEMPLATE={url_template}

print_install_results_and_exit() {{
    echo "{script_id}: start"
    echo "exitCode==$1=="
    echo "listeningOn==$LISTENING_ON=="
    echo "connectionToken==$SERVER_CONNECTION_TOKEN=="
{env_lines}
    echo "{script_id}: end"
    exit 0
}}

case "$(uname -s)" in
    Linux) PLATFORM=linux ;;
    Darwin) PLATFORM=darwin ;;
    FreeBSD) PLATFORM=freebsd ;;
    *) echo "Error platform not supported: $(uname -s)"; print_install_results_and_exit 1 ;;
esac

case "$(uname -m)" in
    x86_64 | amd64) SERVER_ARCH=x64 ;;
    armv7l | armv8l) SERVER_ARCH=armhf ;;
    arm64 | aarch64) SERVER_ARCH=arm64 ;;
    ppc64le) SERVER_ARCH=ppc64le ;;
    riscv64) SERVER_ARCH=riscv64 ;;
    *) echo "Error architecture not supported: $(uname -m)"; print_install_results_and_exit 1 ;;
esac

mkdir -p "$SERVER_DIR" || print_install_results_and_exit 1

if [ ! -f "$SERVER_SCRIPT" ]; then
    URL="$DOWNLOAD_URL_TEMPLATE"
    URL="${{URL//\\$\\{{version\\}}/{version}}}"
    URL="${{URL//\\$\\{{commit\\}}/{commit}}}"
    URL="${{URL//\\$\\{{quality\\}}/{quality}}}"
    URL="${{URL//\\$\\{{release\\}}/{release}}}"
    URL="${{URL//\\$\\{{os\\}}/$PLATFORM}}"
    URL="${{URL//\\$\\{{arch\\}}/$SERVER_ARCH}}"

    pushd "$SERVER_DIR" > /dev/null
    if command -v wget > /dev/null; then
        wget --tries=3 --timeout=10 --continue --quiet -O server.tar.gz "$URL"
    elif command -v curl > /dev/null; then
        curl --retry 3 --connect-timeout 10 --location --silent --output server.tar.gz "$URL"
    else
        echo "Error no tool to download server binary"
        print_install_results_and_exit 1
    fi
    if [ $? -ne 0 ]; then
        echo "Error downloading server from $URL"
        print_install_results_and_exit 1
    fi
    tar -xf server.tar.gz --strip-components 1 && rm -f server.tar.gz
    popd > /dev/null
    if [ ! -f "$SERVER_SCRIPT" ]; then
        echo "Error server contents are corrupted"
        print_install_results_and_exit 1
    fi
fi

for ext in $SERVER_INITIAL_EXTENSIONS; do
    "$SERVER_SCRIPT" --install-extension "$ext" > /dev/null 2>&1
done

if [ -f "$SERVER_PIDFILE" ] && kill -0 "$(cat "$SERVER_PIDFILE")" 2> /dev/null; then
    echo "Server script is already running"
else
    rm -f "$SERVER_LOGFILE"
    head -c 32 /dev/urandom | od -An -tx1 | tr -d ' \\n' > "$SERVER_TOKENFILE"
    chmod 600 "$SERVER_TOKENFILE"
    "$SERVER_SCRIPT" --start-server --host=127.0.0.1 $SERVER_LISTEN_FLAG \\
        --enable-remote-auto-shutdown --accept-server-license-terms \\
        --connection-token-file "$SERVER_TOKENFILE" &> "$SERVER_LOGFILE" &
    echo $! > "$SERVER_PIDFILE"
fi

SERVER_CONNECTION_TOKEN="$(cat "$SERVER_TOKENFILE")"

for _ in 1 2 3 4 5 6 7 8 9 10; do
    LISTENING_ON="$(grep -E 'Extension host agent listening on .+' "$SERVER_LOGFILE" | sed 's/Extension host agent listening on //')"
    [ -n "$LISTENING_ON" ] && break
    sleep 0.5
done

if [ -z "$LISTENING_ON" ]; then
    echo "Error server did not start successfully"
    print_install_results_and_exit 1
fi

print_install_results_and_exit 0
"""


@dataclass
class ServerConfig:
    """Identity of the server build to install."""

    version: str
    commit: str
    quality: str = "stable"
    release: str = ""
    application_name: str = "codium-server"
    data_folder_name: str = ".vscodium-server"


def parse_install_output(output: str, script_id: str) -> dict[str, str]:
    """Extract ``key==value==`` pairs printed between the script markers.

    Raises:
        BootstrapError: If the markers are missing
    """
    start_marker = f"{script_id}: start"
    end_marker = f"{script_id}: end"

    start = output.find(start_marker)
    end = output.find(end_marker)
    if start == -1 or end == -1 or end < start:
        raise BootstrapError("Failed parsing remote install script output")

    values: dict[str, str] = {}
    for line in output[start + len(start_marker) : end].splitlines():
        match = _RESULT_LINE.match(line.strip())
        if match:
            values[match.group(1)] = match.group(2)
    return values


class ScriptInstaller:
    """Installs and starts the remote server with a bash script."""

    def __init__(self, server: ServerConfig) -> None:
        self.server = server

    async def _check_server(self, download_url_template: str) -> None:
        """Require a version and commit, and fill in a missing release number."""
        missing = [
            name
            for name, value in (("version", self.server.version), ("commit", self.server.commit))
            if not value
        ]
        if missing:
            raise BootstrapError(
                f"Server {' and '.join(missing)} not configured "
                "(set SSH_REMOTE_SERVER_VERSION and SSH_REMOTE_SERVER_COMMIT)"
            )

        if self.server.release or "${release}" not in download_url_template:
            return
        self.server.release = await fetch_release(self.server.version)
        if not self.server.release:
            raise BootstrapError(
                f"No release found for server version {self.server.version} "
                "(set SSH_REMOTE_SERVER_RELEASE)"
            )

    def render_script(
        self,
        script_id: str,
        download_url_template: str,
        extensions: list[str],
        env_var_names: list[str],
        listen_on_socket: bool,
    ) -> str:
        """Render the install script for this server build."""
        if listen_on_socket:
            listen_flag = f'"--socket-path=$SERVER_DATA_DIR/.{self.server.commit}.sock"'
        else:
            listen_flag = "--port=0"

        env_lines = "\n".join(
            f'    echo "{name}==${name}=="' for name in env_var_names if name.isidentifier()
        )

        return INSTALL_SCRIPT.format(
            script_id=script_id,
            app_name=shlex.quote(self.server.application_name),
            data_folder=self.server.data_folder_name,
            commit=self.server.commit,
            version=self.server.version,
            quality=self.server.quality,
            release=self.server.release,
            listen_flag=listen_flag,
            extensions=shlex.quote(" ".join(extensions)),
            url_template=shlex.quote(download_url_template),
            env_lines=env_lines,
        )

    async def install(
        self,
        conn: "asyncssh.SSHClientConnection",
        download_url_template: str,
        extensions: list[str],
        env_var_names: list[str],
        listen_on_socket: bool,
    ) -> InstallResult:
        """Run the install script and parse its report.

        Raises:
            BootstrapError: If the server build is not fully configured or
                the script output cannot be parsed
        """
        await self._check_server(download_url_template)

        script_id = secrets.token_hex(8)
        script = self.render_script(
            script_id, download_url_template, extensions, env_var_names, listen_on_socket
        )

        logger.info(
            "Installing server %s (%s) on remote host",
            self.server.version,
            self.server.commit,
        )
        result = await conn.run("bash -s", input=script, check=False)

        stdout = result.stdout
        if isinstance(stdout, bytes):
            stdout = stdout.decode("utf-8", errors="replace")
        stdout = stdout or ""
        logger.debug("Install script output:\n%s", stdout)

        values = parse_install_output(stdout, script_id)

        try:
            exit_code = int(values.get("exitCode", ""))
        except ValueError as e:
            raise BootstrapError("Install script did not report an exit code") from e

        listening_on: int | str = values.get("listeningOn", "")
        if isinstance(listening_on, str) and listening_on.isdigit():
            listening_on = int(listening_on)

        return InstallResult(
            exit_code=exit_code,
            listening_on=listening_on,
            connection_token=values.get("connectionToken", ""),
            env={name: values.get(name, "") for name in env_var_names},
        )
