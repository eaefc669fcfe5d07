#!/usr/bin/env python3
"""
Convenience script to run the scheduled budget automation job
"""

import os
import sys
import subprocess
from datetime import datetime
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def main():
    """Run one budget automation pass with common configurations"""

    # Ensure we're in the project root
    script_dir = os.path.dirname(os.path.abspath(__file__))
    project_root = os.path.dirname(script_dir)
    os.chdir(project_root)

    os.makedirs('reports', exist_ok=True)

    # DATABASE_URL replaces the individual DB_* variables
    if os.getenv('DATABASE_URL'):
        required_vars = []
    else:
        required_vars = ['DB_HOST', 'DB_PORT', 'DB_NAME', 'DB_USER', 'DB_PASSWORD']

    missing_vars = [var for var in required_vars if not os.getenv(var)]

    if missing_vars:
        print("Error: Missing required database environment variables:")
        for var in missing_vars:
            print(f"  - {var}")
        print("\nPlease set DATABASE_URL or these environment variables:")
        print("export DB_HOST='localhost'")
        print("export DB_PORT='5432'")
        print("export DB_NAME='amazon_ads'")
        print("export DB_USER='postgres'")
        print("export DB_PASSWORD='your_password'")
        sys.exit(1)

    # Extra arguments go to the 'run' subcommand
    args = sys.argv[1:]

    cmd = [
        sys.executable, '-m', 'budget_automation.main',
        '--config', 'config/budget_automation.json',
        '--log-level', 'INFO',
        'run',
        '--output', f'reports/budget_automation_{datetime.now().strftime("%Y%m%d_%H%M%S")}.json',
    ] + args

    print("Running budget automation...")
    print(f"Command: {' '.join(cmd)}")
    print("-" * 60)

    try:
        subprocess.run(cmd, check=True)
        print("\nBudget automation completed successfully!")

    except subprocess.CalledProcessError as e:
        print(f"\nBudget automation failed with exit code {e.returncode}")
        sys.exit(e.returncode)
    except KeyboardInterrupt:
        print("\nBudget automation interrupted by user")
        sys.exit(1)


if __name__ == '__main__':
    main()
