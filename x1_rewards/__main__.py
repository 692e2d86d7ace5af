from x1_rewards.cli import main

if __name__ == "__main__":
    main()
