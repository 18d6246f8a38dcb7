# main_runner.py
import os
import sys
import importlib.util
from typing import Dict, List, Optional

import questionary
from rich.console import Console

from config import MODULE_PATH

console = Console()


def available_tasks(module_path=MODULE_PATH) -> Dict[str, str]:
    """
    Map task name -> file name for every Python module in the modules directory.
    """
    if not os.path.isdir(module_path):
        return {}
    return {
        os.path.splitext(fname)[0]: fname
        for fname in sorted(os.listdir(module_path))
        if fname.endswith('.py') and not fname.startswith('_')
    }


def load_module(module_path):
    """
    Load a module from the given path.
    """
    module_name = os.path.basename(module_path).replace('.py', '')
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def run_task(task: str, module_path=MODULE_PATH) -> bool:
    """
    Run the named task's main(). Returns False when the task does not exist
    or has no main(); the task itself exits non-zero on failure.
    """
    tasks = available_tasks(module_path)
    if task not in tasks:
        console.log(f"[bold red]Unknown task '{task}'. Available: {', '.join(tasks)}[/bold red]")
        return False

    module = load_module(os.path.join(module_path, tasks[task]))
    if not hasattr(module, 'main'):
        console.log(f"[yellow]No main() function found in {task}. Skipping...[/yellow]")
        return False

    module.main()
    return True


def run_selected_module(argv: Optional[List[str]] = None):
    """
    Run the task named on the command line, or let the user pick one.
    """
    argv = sys.argv[1:] if argv is None else argv
    tasks = available_tasks()
    if not tasks:
        console.log(f"[bold red]No Python modules found in '{MODULE_PATH}'.[/bold red]")
        sys.exit(1)

    if argv:
        task = argv[0]
    else:
        choices = [
            questionary.Choice(title=f"{idx + 1}. {name}", value=name)
            for idx, name in enumerate(tasks)
        ]
        task = questionary.select(
            "Select the task you want to run:",
            choices=choices
        ).ask()

    if not task:
        console.log("No module selected.")
        return

    if not run_task(task):
        sys.exit(2)


if __name__ == "__main__":
    run_selected_module()
