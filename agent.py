from kube_metrics_agent import run

if __name__ == "__main__":
    run()
