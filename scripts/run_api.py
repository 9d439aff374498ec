import subprocess
import sys
import os
from pathlib import Path

def main():
    project_root = Path(__file__).parent.parent
    os.chdir(project_root)

    # Ensure src is in python path
    env = os.environ.copy()
    src_path = str(project_root / "src")
    if "PYTHONPATH" in env:
        env["PYTHONPATH"] = f"{src_path}{os.pathsep}{env['PYTHONPATH']}"
    else:
        env["PYTHONPATH"] = src_path

    port = env.get("STOREFRONT_API_PORT", "8000")
    print(f"Starting Storefront Pricing API (FastAPI) on port {port}...")
    try:
        subprocess.run([
            sys.executable, "-m", "uvicorn",
            "storefront_pricing.api.main:app",
            "--host", "0.0.0.0",
            "--port", port,
            "--reload"
        ], env=env)
    except KeyboardInterrupt:
        print("\nAPI stopped.")

if __name__ == "__main__":
    main()
