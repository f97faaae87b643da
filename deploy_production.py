import os
import paramiko

# Configuration (never commit credentials, export them before running)
HOST = os.environ.get("HYDROLOG_DEPLOY_HOST", "")
PORT = int(os.environ.get("HYDROLOG_DEPLOY_PORT", "22"))
USER = os.environ.get("HYDROLOG_DEPLOY_USER", "root")
PASSWORD = os.environ.get("HYDROLOG_DEPLOY_PASSWORD")
KEY_FILE = os.environ.get("HYDROLOG_DEPLOY_KEY_FILE")
REMOTE_DIR = os.environ.get("HYDROLOG_REMOTE_DIR", "/opt/hydrolog")
LOCAL_ARCHIVE = os.environ.get("HYDROLOG_ARCHIVE", "hydrolog.tar.gz")
SERVICE_NAME = "hydrolog"
BIND = os.environ.get("HYDROLOG_BIND", "127.0.0.1:8010")

# Keys copied from the local environment into the remote .env
ENV_KEYS = (
    "DATABASE_URL",
    "SECRET_KEY",
    "SESSION_EXPIRE_DAYS",
    "CORS_ORIGINS",
    "LOG_LEVEL",
    "DEFAULT_SYSTEM_NAME",
    "ADMIN_EMAIL",
    "ADMIN_PASSWORD",
)

def build_env_content(env=None):
    env = os.environ if env is None else env
    lines = ['PROJECT_NAME="HydroLog"', "ENVIRONMENT=production", "COOKIE_SECURE=true"]
    for key in ENV_KEYS:
        value = env.get(key)
        if value:
            lines.append(f"{key}={value}")
    for required in ("SECRET_KEY", "ADMIN_PASSWORD"):
        if not env.get(required):
            raise ValueError(f"{required} must be set for a production deploy")
    return "\n".join(lines) + "\n"

def build_service_content(remote_dir=REMOTE_DIR, bind=BIND):
    return f"""[Unit]
Description=Gunicorn instance to serve HydroLog
After=network.target

[Service]
User=root
Group=www-data
WorkingDirectory={remote_dir}
Environment="PATH={remote_dir}/venv/bin"
ExecStart={remote_dir}/venv/bin/gunicorn -w 4 -k uvicorn.workers.UvicornWorker main:app --bind {bind} --timeout 120

[Install]
WantedBy=multi-user.target
"""

def run_cmd(ssh, cmd):
    print(f"Running: {cmd}")
    stdin, stdout, stderr = ssh.exec_command(cmd)
    exit_status = stdout.channel.recv_exit_status()
    out = stdout.read().decode().strip()
    err = stderr.read().decode().strip()
    if out: print(out)
    if err: print(err)
    if exit_status != 0:
        raise RuntimeError(f"Command failed: {cmd}")

def connect():
    if not HOST:
        raise ValueError("HYDROLOG_DEPLOY_HOST is not set")
    ssh = paramiko.SSHClient()
    ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    ssh.connect(HOST, port=PORT, username=USER, password=PASSWORD, key_filename=KEY_FILE)
    return ssh

def deploy(ssh=None, env=None):
    env_content = build_env_content(env)

    if ssh is None:
        print(f"Connecting to {HOST}:{PORT}...")
        ssh = connect()
    sftp = ssh.open_sftp()
    try:
        run_cmd(ssh, f"mkdir -p {REMOTE_DIR}")

        print(f"Uploading {LOCAL_ARCHIVE}...")
        sftp.put(LOCAL_ARCHIVE, f"{REMOTE_DIR}/{LOCAL_ARCHIVE}")
        run_cmd(ssh, f"cd {REMOTE_DIR} && tar -xzf {LOCAL_ARCHIVE} && rm {LOCAL_ARCHIVE}")

        print("Writing .env file...")
        with sftp.file(f"{REMOTE_DIR}/.env", "w") as f:
            f.write(env_content)

        print("Setting up Virtual Environment...")
        for cmd in (
            "python3 -m venv venv",
            "./venv/bin/pip install --upgrade pip",
            "./venv/bin/pip install . gunicorn",
        ):
            run_cmd(ssh, f"cd {REMOTE_DIR} && {cmd}")

        print("Configuring Systemd Service...")
        with sftp.file(f"/etc/systemd/system/{SERVICE_NAME}.service", "w") as f:
            f.write(build_service_content())

        print("Seeding Database...")
        run_cmd(ssh, f"cd {REMOTE_DIR} && ./venv/bin/python seed_db.py")

        print("Reloading Systemd and Restarting Service...")
        run_cmd(ssh, "systemctl daemon-reload")
        run_cmd(ssh, f"systemctl enable {SERVICE_NAME}")
        run_cmd(ssh, f"systemctl restart {SERVICE_NAME}")
    finally:
        sftp.close()
        ssh.close()
    print("Deployment Configured Successfully!")

if __name__ == "__main__":
    deploy()
