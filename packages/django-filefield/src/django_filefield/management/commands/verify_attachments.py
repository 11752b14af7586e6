"""
Management command to verify stored attachments.

Checks every registered attachment for:
- Missing original files
- Missing derivatives (optionally rebuilt with --rebuild)
"""

import json
import os

from django.core.management.base import BaseCommand, CommandError

from django_filefield.exceptions import AttachmentError
from django_filefield.fields import iter_controllers


class Command(BaseCommand):
    help = "Verify attachment files against database records"

    def add_arguments(self, parser):
        parser.add_argument(
            "models",
            nargs="*",
            metavar="app_label.Model",
            help="Limit the scan to these models",
        )
        parser.add_argument(
            "--rebuild",
            action="store_true",
            help="Regenerate missing derivatives when the original exists",
        )
        parser.add_argument(
            "--format",
            choices=["text", "json"],
            default="text",
            help="Output format (default: text)",
        )
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Show details of each file checked",
        )

    def handle(self, *args, **options):
        labels = {label.lower() for label in options["models"]}
        rebuild = options["rebuild"]
        output_format = options["format"]
        verbose = options["verbose"]
        # per-file lines are text output only
        show_details = verbose and output_format == "text"

        controllers = [
            controller for controller in iter_controllers()
            if not labels or controller.model._meta.label_lower in labels
        ]
        if labels and not controllers:
            raise CommandError(f"No attachments registered for {', '.join(sorted(labels))}")

        ok_count = 0
        missing_files = []
        incomplete_files = []
        rebuilt_files = []
        failed_files = []

        for controller in controllers:
            path_attribute = controller.path_attribute
            records = (
                controller.model._base_manager
                .exclude(**{f"{path_attribute}__isnull": True})
                .exclude(**{path_attribute: ""})
            )
            for instance in records.iterator():
                stored = getattr(instance, path_attribute)
                *derivatives, original = controller.stored_files(stored)

                if not os.path.exists(original):
                    missing_files.append(stored)
                    if show_details:
                        self.stdout.write(self.style.ERROR(f"MISSING: {stored}"))
                    continue

                absent = [path for path in derivatives if not os.path.exists(path)]
                if not absent:
                    ok_count += 1
                    if show_details:
                        self.stdout.write(f"OK: {stored}")
                    continue

                if not rebuild:
                    incomplete_files.append(stored)
                    if show_details:
                        self.stdout.write(
                            self.style.WARNING(f"INCOMPLETE: {stored} ({len(absent)} derivatives missing)")
                        )
                    continue

                try:
                    controller.rebuild_derivatives(instance)
                except AttachmentError as e:
                    failed_files.append(stored)
                    if show_details:
                        self.stdout.write(self.style.ERROR(f"FAILED: {stored}: {e}"))
                else:
                    rebuilt_files.append(stored)
                    if show_details:
                        self.stdout.write(self.style.SUCCESS(f"REBUILT: {stored}"))

        total_scanned = (
            ok_count + len(missing_files) + len(incomplete_files)
            + len(rebuilt_files) + len(failed_files)
        )

        if output_format == "json":
            self.stdout.write(json.dumps({
                "ok": ok_count,
                "missing": len(missing_files),
                "incomplete": len(incomplete_files),
                "rebuilt": len(rebuilt_files),
                "failed": len(failed_files),
                "scanned": total_scanned,
                "missing_files": missing_files if verbose else [],
                "incomplete_files": incomplete_files if verbose else [],
            }))
            return

        self.stdout.write("\nAttachment Verification Results")
        self.stdout.write("=" * 31)
        self.stdout.write(f"Scanned: {total_scanned}")
        self.stdout.write(self.style.SUCCESS(f"OK: {ok_count}"))
        if missing_files:
            self.stdout.write(self.style.ERROR(f"MISSING: {len(missing_files)}"))
        else:
            self.stdout.write("MISSING: 0")
        if incomplete_files:
            self.stdout.write(self.style.WARNING(f"INCOMPLETE: {len(incomplete_files)}"))
        else:
            self.stdout.write("INCOMPLETE: 0")
        if rebuild:
            self.stdout.write(f"REBUILT: {len(rebuilt_files)}")
            self.stdout.write(f"FAILED: {len(failed_files)}")

        if missing_files and verbose:
            self.stdout.write("\nMissing files:")
            for f in missing_files:
                self.stdout.write(f"  - {f}")
