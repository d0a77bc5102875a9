import sys

from credit_tree.pipeline import PipelineRunner


def main() -> None:
    """Run the full credit decision tree pipeline."""
    config_path = sys.argv[1] if len(sys.argv) > 1 else "config/default.yaml"
    runner = PipelineRunner(config_path)
    result = runner.run()
    print(f"Test ROC-AUC: {result.test_roc_auc:.4f}")


if __name__ == "__main__":
    main()
